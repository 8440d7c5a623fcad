from fastapi import APIRouter

from brokerage.api.routes import (
    analytics,
    auth,
    health,
    orders,
    quotations,
    reports,
    settings,
    users,
)

api_router = APIRouter()

api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(settings.router)
api_router.include_router(analytics.router)
api_router.include_router(reports.router)
# Department-scoped routers last: their leading `{department}` segment matches anything.
api_router.include_router(quotations.router)
api_router.include_router(orders.router)
