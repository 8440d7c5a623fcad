from brokerage.services import analytics, lifecycle, queries
from brokerage.services.active_year import get_active_year, set_active_year
from brokerage.services.audit import audit_event

__all__ = [
    "analytics",
    "lifecycle",
    "queries",
    "get_active_year",
    "set_active_year",
    "audit_event",
]
