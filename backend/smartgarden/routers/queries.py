"""Garden insert, plant update/selection, tool type delete and report queries."""
from fastapi import APIRouter, Depends, Request

from smartgarden.config import get_settings
from smartgarden.database import ConnectionPool, get_pool
from smartgarden.rate_limit import limiter
from smartgarden.routers.common import respond
from smartgarden.schemas import (
    GardenCreate,
    JoinPlantTypeRequest,
    OperationResult,
    PlantSelectRequest,
    PlantUpdate,
    ProjectionRequest,
    ProjectionResult,
    QueryResult,
    SelectionResult,
    ToolTypeDelete,
    ToolTypeDeleteResult,
)
from smartgarden.services import data_access
from smartgarden.services.statement_builder import Filter

settings = get_settings()

router = APIRouter(tags=["queries"])


# ── Writes ───────────────────────────────────────────────────

@router.post("/insert-gardentable", response_model=OperationResult)
@limiter.limit(settings.write_rate_limit)
def insert_garden(request: Request, data: GardenCreate, pool: ConnectionPool = Depends(get_pool)):
    """Insert a garden, creating its location row if needed."""
    return respond(data_access.insert_garden(pool, data.model_dump()))


@router.post("/update-plant", response_model=OperationResult)
@limiter.limit(settings.write_rate_limit)
def update_plant(request: Request, data: PlantUpdate, pool: ConnectionPool = Depends(get_pool)):
    """Apply only the plant fields present in ``fieldsToUpdate``."""
    fields = data.fields.model_dump(exclude_unset=True)
    return respond(data_access.update_plant(pool, data.plant_id, fields))


@router.post("/delete-tooltype", response_model=ToolTypeDeleteResult)
@limiter.limit(settings.write_rate_limit)
def delete_tool_type(request: Request, data: ToolTypeDelete, pool: ConnectionPool = Depends(get_pool)):
    """Delete a tool type and, by cascade, every tool of that type."""
    return respond(data_access.delete_tool_type(pool, data.name))


# ── Queries ──────────────────────────────────────────────────

@router.post("/select-planttable", response_model=SelectionResult)
def select_plant(data: PlantSelectRequest, pool: ConnectionPool = Depends(get_pool)):
    filters = [Filter(column=f.column, value=f.value, logic=f.logic) for f in data.filters]
    return respond(data_access.select_plant(pool, filters))


@router.post("/project-garden", response_model=ProjectionResult)
def project_garden(data: ProjectionRequest, pool: ConnectionPool = Depends(get_pool)):
    return respond(data_access.project_garden(pool, data.columns))


@router.post("/join-plant-planttype", response_model=QueryResult)
def join_plant_type(data: JoinPlantTypeRequest, pool: ConnectionPool = Depends(get_pool)):
    return respond(data_access.join_plant_type(pool, data.type_name))


@router.get("/plant-groupby-type", response_model=QueryResult)
def group_by_plant_type(pool: ConnectionPool = Depends(get_pool)):
    """Number of plants per plant type."""
    return respond(data_access.group_by_plant_type(pool))


@router.get("/sections-with-all-plant-types", response_model=QueryResult)
def sections_with_all_plant_types(pool: ConnectionPool = Depends(get_pool)):
    return respond(data_access.division_query(pool))


@router.get("/sections-above-avg-diversity", response_model=QueryResult)
def sections_above_avg_diversity(pool: ConnectionPool = Depends(get_pool)):
    return respond(data_access.nested_aggregation_query(pool))


@router.get("/sections-high-water-usage", response_model=QueryResult)
def sections_high_water_usage(pool: ConnectionPool = Depends(get_pool)):
    return respond(data_access.having_query(pool))
