"""Pydantic schemas for API request/response validation."""
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# === Garden Schemas ===
class GardenCreate(BaseModel):
    garden_id: int
    name: str
    postal_code: str
    street_name: str
    house_number: int
    owner_id: int

    @field_validator("name", "postal_code", "street_name")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class ProjectionRequest(BaseModel):
    columns: List[str] = []


# === Plant Schemas ===
class PlantFields(BaseModel):
    """Sparse plant update: only fields present in the request are applied."""
    model_config = ConfigDict(extra="forbid")

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: Optional[float] = None
    is_ready: Optional[int] = Field(default=None, ge=0, le=1)
    type_name: Optional[str] = None
    section_id: Optional[int] = None


class PlantUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plant_id: int
    fields: PlantFields = Field(default_factory=PlantFields, alias="fieldsToUpdate")


class PlantFilter(BaseModel):
    column: str
    value: Union[int, float, str] = ""
    logic: Optional[str] = None


class PlantSelectRequest(BaseModel):
    filters: List[PlantFilter] = Field(min_length=1)


class JoinPlantTypeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type_name: str = Field(default="", alias="plantTypeName")


# === Tool Type Schemas ===
class ToolTypeDelete(BaseModel):
    name: str


# === Responses ===
class OperationResult(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class ToolTypeDeleteResult(OperationResult):
    deleted: int = 0


class TableResponse(BaseModel):
    data: List[Any]


class SelectionResult(OperationResult):
    rows: List[List[Any]] = []


class ProjectionResult(OperationResult):
    columns: List[str] = []
    rows: List[List[Any]] = []


class QueryResult(OperationResult):
    data: List[dict] = []


class ConnectionStatus(BaseModel):
    connected: bool
