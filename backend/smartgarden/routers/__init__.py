from smartgarden.routers.admin import router as admin_router
from smartgarden.routers.queries import router as queries_router
from smartgarden.routers.tables import router as tables_router

__all__ = ["admin_router", "queries_router", "tables_router"]
