"""
Referential-integrity checks run before each write.

Every check runs on the caller's connection, in order, and raises
``ValidationFailure`` at the first violation. Nothing here opens or closes
connections.
"""
import logging
from typing import Any, Dict, Mapping

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from smartgarden.errors import EngineFailure, NotFound, ValidationFailure, engine_message
from smartgarden.services.statement_builder import build_update_clause, update_statement

logger = logging.getLogger(__name__)

OWNER_NOT_FOUND = "Owner ID does not exist in Person table"
POSTAL_CODE_NOT_FOUND = "Postal code does not exist in PostalCode table"
DUPLICATE_GARDEN = "Garden ID already exists"
INVALID_LOCATION = "Invalid location"
NO_FIELDS = "No fields to update"
PLANT_TYPE_NOT_FOUND = "Plant type does not exist in PlantType table"
SECTION_NOT_FOUND = "Section does not exist in Section table"
PLANT_NOT_FOUND = "Plant not found"
TOOL_TYPE_NOT_FOUND = "Tool type not found"

GARDEN_FIELDS = ("garden_id", "name", "postal_code", "street_name", "house_number", "owner_id")


def _exists(conn: Connection, sql: str, params: Dict[str, Any]) -> bool:
    return conn.execute(text(sql), params).first() is not None


def validate_garden_insert(conn: Connection, payload: Mapping[str, Any]) -> None:
    """Check owner, postal code, garden id and location, then insert the garden.

    A missing Location row is created on the fly. Each write is committed
    on its own so the Location is visible to the Garden insert that follows.
    """
    missing = [key for key in GARDEN_FIELDS if key not in payload]
    if missing:
        raise ValidationFailure(f"Missing field(s): {', '.join(missing)}")

    if not _exists(conn, "SELECT 1 FROM Person WHERE person_id = :owner_id", {"owner_id": payload["owner_id"]}):
        raise ValidationFailure(OWNER_NOT_FOUND)

    if not _exists(
        conn,
        "SELECT 1 FROM PostalCode WHERE postal_code = :postal_code",
        {"postal_code": payload["postal_code"]},
    ):
        raise ValidationFailure(POSTAL_CODE_NOT_FOUND)

    if _exists(conn, "SELECT 1 FROM Garden WHERE garden_id = :garden_id", {"garden_id": payload["garden_id"]}):
        raise ValidationFailure(DUPLICATE_GARDEN)

    location = {
        "postal_code": payload["postal_code"],
        "house_number": payload["house_number"],
        "street_name": payload["street_name"],
    }
    if not _exists(
        conn,
        """
        SELECT 1 FROM Location
        WHERE postal_code = :postal_code
          AND house_number = :house_number
          AND street_name = :street_name
        """,
        location,
    ):
        try:
            conn.execute(
                text(
                    """
                    INSERT INTO Location (postal_code, house_number, street_name)
                    VALUES (:postal_code, :house_number, :street_name)
                    """
                ),
                location,
            )
            conn.commit()
            logger.info(f"Created location {location['house_number']} {location['street_name']}, {location['postal_code']}")
        except SQLAlchemyError as exc:
            conn.rollback()
            logger.warning(f"Location insert rejected: {engine_message(exc)}")
            raise ValidationFailure(INVALID_LOCATION) from exc

    try:
        conn.execute(
            text(
                """
                INSERT INTO Garden (garden_id, name, postal_code, street_name, house_number, owner_id)
                VALUES (:garden_id, :name, :postal_code, :street_name, :house_number, :owner_id)
                """
            ),
            {key: payload[key] for key in GARDEN_FIELDS},
        )
        conn.commit()
    except IntegrityError as exc:
        conn.rollback()
        # Another request may have inserted the same id after our pre-check.
        if _exists(conn, "SELECT 1 FROM Garden WHERE garden_id = :garden_id", {"garden_id": payload["garden_id"]}):
            raise ValidationFailure(DUPLICATE_GARDEN) from exc
        raise EngineFailure(engine_message(exc)) from exc
    except SQLAlchemyError as exc:
        conn.rollback()
        raise EngineFailure(engine_message(exc)) from exc


def validate_plant_update(conn: Connection, plant_id: Any, fields: Mapping[str, Any]) -> None:
    """Verify referenced rows for a sparse plant update, then apply it."""
    if not fields:
        raise ValidationFailure(NO_FIELDS)

    if "type_name" in fields and not _exists(
        conn, "SELECT 1 FROM PlantType WHERE name = :name", {"name": fields["type_name"]}
    ):
        raise ValidationFailure(PLANT_TYPE_NOT_FOUND)

    if "section_id" in fields and not _exists(
        conn, "SELECT 1 FROM Section WHERE section_id = :section_id", {"section_id": fields["section_id"]}
    ):
        raise ValidationFailure(SECTION_NOT_FOUND)

    sql, params = update_statement("Plant", "plant_id", build_update_clause(fields, plant_id))
    try:
        result = conn.execute(text(sql), params)
        if result.rowcount == 0:
            conn.rollback()
            raise NotFound(PLANT_NOT_FOUND)
        conn.commit()
    except SQLAlchemyError as exc:
        conn.rollback()
        raise EngineFailure(engine_message(exc)) from exc


def validate_tool_type_delete(conn: Connection, name: str) -> int:
    """Delete a tool type; its tools go with it through ON DELETE CASCADE.

    Returns the number of ToolType rows removed.
    """
    if not _exists(conn, "SELECT 1 FROM ToolType WHERE name = :name", {"name": name}):
        raise NotFound(TOOL_TYPE_NOT_FOUND)

    try:
        result = conn.execute(text("DELETE FROM ToolType WHERE name = :name"), {"name": name})
        conn.commit()
    except SQLAlchemyError as exc:
        conn.rollback()
        raise EngineFailure(engine_message(exc)) from exc

    if result.rowcount == 0:
        raise NotFound(TOOL_TYPE_NOT_FOUND)
    return result.rowcount
