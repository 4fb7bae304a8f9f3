"""Connectivity check and destructive reset endpoints."""
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from smartgarden.config import get_settings
from smartgarden.database import ConnectionPool, get_pool
from smartgarden.rate_limit import limiter
from smartgarden.schemas import ConnectionStatus, OperationResult
from smartgarden.services import data_access

settings = get_settings()

router = APIRouter(tags=["admin"])


@router.get("/check-db-connection", response_model=ConnectionStatus)
def check_db_connection(pool: ConnectionPool = Depends(get_pool)):
    """Report whether a connection can be taken from the pool."""
    return {"connected": data_access.check_connection(pool)}


@router.post("/reset-database", response_model=OperationResult)
@limiter.limit(settings.reset_rate_limit)
def reset_database(request: Request, pool: ConnectionPool = Depends(get_pool)):
    """Drop, recreate and reseed all tables from the seed script."""
    if data_access.reset_database(pool, script_path=settings.seed_script_path):
        return {"success": True}
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Database reset failed", "error": "engine"},
    )
