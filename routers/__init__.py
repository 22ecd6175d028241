from .dashboard_api import router as dashboard_api_router
from .items_api import router as items_api_router
from .loans_api import router as loans_api_router
from .members_api import router as members_api_router

ALL_ROUTERS = (
    members_api_router,
    items_api_router,
    loans_api_router,
    dashboard_api_router,
)
