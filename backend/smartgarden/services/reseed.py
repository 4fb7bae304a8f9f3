"""
Reset/Reseed Engine

Replays the schema-and-seed script statement by statement. DROP failures are
expected on a fresh database and skipped; any other failure stops the run.
"""
import enum
import logging
from importlib import resources
from pathlib import Path
from typing import List, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from smartgarden.errors import FatalScriptFailure, engine_message

logger = logging.getLogger(__name__)

COMMENT_MARKER = "--"
TERMINATOR = ";"


class ResetState(str, enum.Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    FATAL = "fatal"


def parse_script(script: str) -> List[str]:
    """Split a SQL script into executable statements, in file order.

    Blank lines and lines starting with ``--`` are dropped from each
    statement; statements left empty are discarded.
    """
    statements = []
    for chunk in script.split(TERMINATOR):
        lines = [
            line for line in chunk.splitlines()
            if line.strip() and not line.strip().startswith(COMMENT_MARKER)
        ]
        statement = "\n".join(lines).strip()
        if statement:
            statements.append(statement)
    return statements


def is_drop(statement: str) -> bool:
    return statement.strip().upper().startswith("DROP")


def load_script(path: Optional[str] = None) -> str:
    """Read the seed script from ``path`` or from the packaged default."""
    if path:
        return Path(path).read_text(encoding="utf-8")
    return resources.files("smartgarden.sql").joinpath("database_initialization.sql").read_text(encoding="utf-8")


class ResetEngine:
    """Runs a parsed script once; ``state`` ends in SUCCESS or FATAL."""

    def __init__(self, statements: List[str]):
        self.statements = statements
        self.state = ResetState.IDLE
        self.executed = 0
        self.skipped_drops = 0

    @classmethod
    def from_script(cls, script: str) -> "ResetEngine":
        return cls(parse_script(script))

    def run(self, conn: Connection) -> bool:
        if self.state is not ResetState.IDLE:
            raise RuntimeError(f"Reset engine already {self.state.value}")

        self.state = ResetState.RUNNING
        logger.info(f"Replaying {len(self.statements)} statements")
        try:
            for index, statement in enumerate(self.statements):
                self._execute(conn, index, statement)
        except FatalScriptFailure as exc:
            self.state = ResetState.FATAL
            logger.error(f"Reset aborted at statement {exc.index + 1}: {exc.message}")
            return False

        self.state = ResetState.SUCCESS
        logger.info(f"Reset complete: {self.executed} statements executed, {self.skipped_drops} missing objects skipped")
        return True

    def _execute(self, conn: Connection, index: int, statement: str) -> None:
        try:
            conn.exec_driver_sql(statement)
            conn.commit()
        except SQLAlchemyError as exc:
            conn.rollback()
            if is_drop(statement):
                self.skipped_drops += 1
                logger.info(f"Statement {index + 1} dropped nothing (object might not exist), continuing")
            else:
                raise FatalScriptFailure(engine_message(exc), index, statement) from exc
        self.executed += 1
