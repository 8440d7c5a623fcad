from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from brokerage.models.domain import Department, QuotationStatus


@dataclass(frozen=True)
class QuotationConfirmed:
    """Emitted after a quotation write has committed with a confirmation edge.

    `year` is the active year at emission time; the derived order is stamped
    with it even when the quotation belongs to an earlier year.
    """

    quotation_id: int
    department: Department
    year: int
    actor_user_id: int | None = None
    occurred_at: datetime = field(default_factory=datetime.utcnow)


class CascadeError(Exception):
    """The quotation was persisted but its firm order could not be created."""

    def __init__(self, quotation_id: int, reason: str):
        super().__init__(f"Firm order creation failed for quotation {quotation_id}: {reason}")
        self.quotation_id = quotation_id
        self.reason = reason


def is_confirmation_edge(
    previous: QuotationStatus | None, current: QuotationStatus | None
) -> bool:
    """True only when a quotation moves into Confirmed from another state.

    `previous=None` means the quotation is being created.
    Re-saving an already Confirmed quotation is not an edge.
    """

    return current == QuotationStatus.confirmed and previous != QuotationStatus.confirmed
