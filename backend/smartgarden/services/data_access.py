"""
Data-access facade.

Each exported operation acquires exactly one connection from the pool,
delegates to the statement builder / integrity validator / reset engine,
and always returns a plain result. Nothing raised inside escapes:

* reads degrade to an empty list,
* writes return ``{"success": False, "message": ...}``.
"""
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from smartgarden.database import ConnectionPool
from smartgarden.errors import (
    ConnectivityFailure,
    GardenError,
    NotFound,
    ValidationFailure,
    engine_message,
)
from smartgarden.services import integrity
from smartgarden.services.reseed import ResetEngine, load_script
from smartgarden.services.statement_builder import (
    Filter,
    build_filter_clause,
    build_projection,
    select_statement,
)

logger = logging.getLogger(__name__)

READ_FAILURES = (SQLAlchemyError, ConnectivityFailure)

TABLES = {
    "garden": "Garden",
    "person": "Person",
    "postalcode": "PostalCode",
    "tooltype": "ToolType",
    "planttype": "PlantType",
    "sectiondimensions": "SectionDimensions",
    "location": "Location",
    "tool": "Tool",
    "hasaccess": "HasAccess",
    "section": "Section",
    "plant": "Plant",
    "environmentaldatapoint": "EnvironmentalDataPoint",
    "maintenancelog": "MaintenanceLog",
    "water": "Water",
    "nutrient": "Nutrient",
    "light": "Light",
}

# Tables whose rows are returned as {column: value} records instead of lists.
KEYED_TABLES = {"postalcode"}


def _failure(message: str, error: str = "validation", **extra: Any) -> Dict[str, Any]:
    return {"success": False, "message": message, "error": error, **extra}


def _read_failure(exc: Exception, **extra: Any) -> Dict[str, Any]:
    error = "connectivity" if isinstance(exc, ConnectivityFailure) else "engine"
    return _failure(engine_message(exc), error=error, **extra)


def _fetch_rows(pool: ConnectionPool, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[List[Any]]:
    with pool.acquire() as conn:
        result = conn.execute(text(sql), dict(params or {}))
        return [list(row) for row in result]


def _fetch_records(pool: ConnectionPool, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
    with pool.acquire() as conn:
        result = conn.execute(text(sql), dict(params or {}))
        return [{key.lower(): value for key, value in row._mapping.items()} for row in result]


# ── Connectivity / reset ─────────────────────────────────────


def check_connection(pool: ConnectionPool) -> bool:
    try:
        pool.ping()
        return True
    except READ_FAILURES as exc:
        logger.warning(f"Database connection check failed: {exc}")
        return False


def reset_database(pool: ConnectionPool, script: Optional[str] = None, script_path: Optional[str] = None) -> bool:
    """Drop, recreate and reseed every table from the seed script."""
    try:
        content = script if script is not None else load_script(script_path)
    except OSError as exc:
        logger.error(f"Unable to read seed script: {exc}")
        return False

    engine = ResetEngine.from_script(content)
    try:
        with pool.acquire() as conn:
            return engine.run(conn)
    except READ_FAILURES as exc:
        logger.error(f"Error resetting database: {exc}")
        return False


# ── Fetch ────────────────────────────────────────────────────


def fetch_table(pool: ConnectionPool, entity: str) -> List[Any]:
    """Return every row of ``entity`` or an empty list if anything goes wrong."""
    table = TABLES.get(entity)
    if table is None:
        logger.warning(f"Unknown table requested: {entity}")
        return []

    sql = f"SELECT * FROM {table}"
    try:
        if entity in KEYED_TABLES:
            return _fetch_records(pool, sql)
        return _fetch_rows(pool, sql)
    except READ_FAILURES as exc:
        logger.warning(f"Fetching {table} failed: {exc}")
        return []


# ── Writes ───────────────────────────────────────────────────


def _run_write(pool: ConnectionPool, operation, *args) -> Dict[str, Any]:
    try:
        with pool.acquire() as conn:
            outcome = operation(conn, *args)
    except NotFound as exc:
        logger.info(f"{operation.__name__} rejected: {exc.message}")
        return _failure(exc.message, error="not_found")
    except ValidationFailure as exc:
        logger.info(f"{operation.__name__} rejected: {exc.message}")
        return _failure(exc.message)
    except ConnectivityFailure as exc:
        logger.error(f"{operation.__name__} failed: {exc.message}")
        return _failure(exc.message, error="connectivity")
    except GardenError as exc:
        logger.error(f"{operation.__name__} failed: {exc.message}")
        return _failure(exc.message, error="engine")
    except SQLAlchemyError as exc:
        logger.exception(f"{operation.__name__} failed")
        return _failure(engine_message(exc), error="engine")

    result: Dict[str, Any] = {"success": True}
    if outcome is not None:
        result["outcome"] = outcome
    return result


def insert_garden(pool: ConnectionPool, payload: Mapping[str, Any]) -> Dict[str, Any]:
    return _run_write(pool, integrity.validate_garden_insert, payload)


def update_plant(pool: ConnectionPool, plant_id: Any, fields: Mapping[str, Any]) -> Dict[str, Any]:
    if not fields:
        # Rejected before a connection is even taken.
        return _failure(integrity.NO_FIELDS)
    return _run_write(pool, integrity.validate_plant_update, plant_id, fields)


def delete_tool_type(pool: ConnectionPool, name: str) -> Dict[str, Any]:
    result = _run_write(pool, integrity.validate_tool_type_delete, name)
    if not result["success"]:
        return result
    deleted = result.pop("outcome")
    return {"success": True, "deleted": deleted, "message": f"Deleted tool type '{name}' and its tools"}


# ── Queries ──────────────────────────────────────────────────


def select_plant(pool: ConnectionPool, filters: Sequence[Filter]) -> Dict[str, Any]:
    try:
        where = build_filter_clause(filters)
    except ValidationFailure as exc:
        return _failure(exc.message)

    sql, params = select_statement("Plant", where)
    try:
        rows = _fetch_rows(pool, sql + " ORDER BY plant_id", params)
    except READ_FAILURES as exc:
        logger.warning(f"Plant selection failed: {exc}")
        return _read_failure(exc)
    return {"success": True, "rows": rows}


def project_garden(pool: ConnectionPool, columns: Sequence[str]) -> Dict[str, Any]:
    try:
        selected = build_projection(columns)
    except ValidationFailure as exc:
        return _failure(exc.message)

    sql = f"SELECT {', '.join(selected)} FROM Garden ORDER BY garden_id"
    try:
        rows = _fetch_rows(pool, sql)
    except READ_FAILURES as exc:
        logger.warning(f"Garden projection failed: {exc}")
        return _read_failure(exc)
    return {"success": True, "columns": selected, "rows": rows}


def join_plant_type(pool: ConnectionPool, type_name: str) -> Dict[str, Any]:
    if not type_name or not type_name.strip():
        return _failure("Please select a plant type", data=[])

    sql = """
        SELECT p.plant_id, p.latitude, p.longitude, p.radius, p.is_ready,
               p.section_id, pt.name AS type_name, pt.requirements, pt.description
        FROM Plant p
        JOIN PlantType pt ON p.type_name = pt.name
        WHERE pt.name = :type_name
        ORDER BY p.plant_id
    """
    return _aggregate(pool, "join", sql, {"type_name": type_name.strip()})


def _aggregate(pool: ConnectionPool, label: str, sql: str, params: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    try:
        data = _fetch_records(pool, sql, params)
    except READ_FAILURES as exc:
        logger.warning(f"{label} query failed: {exc}")
        return _read_failure(exc, data=[])
    return {"success": True, "data": data}


def group_by_plant_type(pool: ConnectionPool) -> Dict[str, Any]:
    sql = """
        SELECT type_name, COUNT(*) AS plant_count
        FROM Plant
        GROUP BY type_name
        ORDER BY type_name
    """
    return _aggregate(pool, "group-by", sql)


def division_query(pool: ConnectionPool) -> Dict[str, Any]:
    """Sections that contain at least one plant of every plant type."""
    sql = """
        SELECT s.section_id, s.garden_id, g.name AS garden_name
        FROM Section s
        JOIN Garden g ON s.garden_id = g.garden_id
        WHERE NOT EXISTS (
            SELECT pt.name
            FROM PlantType pt
            WHERE NOT EXISTS (
                SELECT p.plant_id
                FROM Plant p
                WHERE p.section_id = s.section_id
                  AND p.type_name = pt.name
            )
        )
        ORDER BY s.section_id
    """
    return _aggregate(pool, "division", sql)


def nested_aggregation_query(pool: ConnectionPool) -> Dict[str, Any]:
    """Sections whose plant-type diversity is above the per-section average."""
    sql = """
        SELECT s.section_id, s.garden_id, g.name AS garden_name,
               COUNT(DISTINCT p.type_name) AS diversity
        FROM Section s
        JOIN Garden g ON s.garden_id = g.garden_id
        JOIN Plant p ON s.section_id = p.section_id
        GROUP BY s.section_id, s.garden_id, g.name
        HAVING COUNT(DISTINCT p.type_name) > (
            SELECT AVG(diversity_count)
            FROM (
                SELECT COUNT(DISTINCT p2.type_name) AS diversity_count
                FROM Plant p2
                GROUP BY p2.section_id
            ) per_section
        )
        ORDER BY diversity DESC, s.section_id
    """
    return _aggregate(pool, "nested aggregation", sql)


def having_query(pool: ConnectionPool, min_litres: float = 50) -> Dict[str, Any]:
    """Sections whose total watering exceeds ``min_litres``."""
    sql = """
        SELECT s.section_id, s.garden_id, g.name AS garden_name,
               SUM(w.volume_litres) AS total_water
        FROM Section s
        JOIN Garden g ON s.garden_id = g.garden_id
        JOIN Water w ON s.section_id = w.section_id
        GROUP BY s.section_id, s.garden_id, g.name
        HAVING SUM(w.volume_litres) > :min_litres
        ORDER BY total_water DESC
    """
    return _aggregate(pool, "having", sql, {"min_litres": min_litres})
