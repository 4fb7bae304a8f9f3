"""Read-only table endpoints: one ``GET /<entity>table`` per table."""
from fastapi import APIRouter, Depends

from smartgarden.database import ConnectionPool, get_pool
from smartgarden.schemas import TableResponse
from smartgarden.services import data_access

router = APIRouter(tags=["tables"])


def _register(entity: str) -> None:
    table = data_access.TABLES[entity]

    def fetch(pool: ConnectionPool = Depends(get_pool)):
        return {"data": data_access.fetch_table(pool, entity)}

    fetch.__name__ = f"fetch_{entity}"
    fetch.__doc__ = f"Return every {table} row."
    router.add_api_route(
        f"/{entity}table",
        fetch,
        methods=["GET"],
        response_model=TableResponse,
        name=f"fetch_{entity}",
    )


for _entity in data_access.TABLES:
    _register(_entity)
