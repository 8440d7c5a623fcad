from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping, Optional, Protocol

from brokerage.models.domain import (
    FIRM_ORDER_INITIAL_STATUSES,
    BusinessType,
    Currency,
    QuotationStatus,
)
from brokerage.services.departments import VESSEL_PRODUCT_TYPES, DepartmentProfile, normalize_choice

logger = logging.getLogger("brokerage")

BROKER_REQUIRED_MESSAGE = (
    "Broker name not found. Please provide it manually when uploading the quotation."
)

CURRENCY_ALIASES: dict[str, str] = {
    "aed": Currency.AED.value,
    "usd": Currency.USD.value,
    "eur": Currency.EUR.value,
    "dhs": Currency.AED.value,
    "dirham": Currency.AED.value,
}

BUSINESS_ALIASES: dict[str, str] = {
    "new": BusinessType.new_business.value,
    "new business": BusinessType.new_business.value,
    "renewal": BusinessType.renewal.value,
}

STATUS_ALIASES: dict[str, str] = {
    "open": QuotationStatus.open.value,
    "opened": QuotationStatus.open.value,
    "pending": QuotationStatus.open.value,
    "confirmed": QuotationStatus.confirmed.value,
    "confirm": QuotationStatus.confirmed.value,
    "accepted": QuotationStatus.confirmed.value,
    "bind": QuotationStatus.confirmed.value,
    "declined": QuotationStatus.decline.value,
    "decline": QuotationStatus.decline.value,
    "rejected": QuotationStatus.decline.value,
}

# Label (lowercased, without the colon) -> raw field name.
FIELD_LABELS: dict[str, str] = {
    "broker": "broker_name",
    "broker name": "broker_name",
    "insured": "insured_name",
    "insured name": "insured_name",
    "client": "insured_name",
    "product": "product_type",
    "product type": "product_type",
    "cover": "product_type",
    "premium": "premium",
    "estimated premium": "premium",
    "currency": "currency",
    "date": "date",
    "quotation date": "date",
    "order date": "date",
    "status": "status",
    "business type": "business_type",
    "business": "business_type",
    "decline reason": "decline_reason",
    "notes": "notes",
    "remarks": "notes",
    "vessel": "vessel_name",
    "vessel name": "vessel_name",
    "pre-condition survey": "requires_pre_condition_survey",
    "pre condition survey": "requires_pre_condition_survey",
    "survey required": "requires_pre_condition_survey",
}

_LABEL_LINE = re.compile(r"^\s*([A-Za-z][A-Za-z \-/]*?)\s*[:=]\s*(.+?)\s*$")
_DMY = re.compile(r"(\d{1,2})[/-](\d{1,2})[/-](\d{2,4})")


class ExtractionError(ValueError):
    """A quotation document could not be turned into a usable draft."""


class FieldExtractor(Protocol):
    def extract(self, text: str) -> dict[str, Any]:
        """Return raw field values keyed by field name; absent fields are omitted."""
        ...


class LabelledFieldExtractor:
    """Reads `Label: value` lines; the first occurrence of a label wins."""

    def __init__(self, labels: Mapping[str, str] | None = None):
        self.labels = dict(labels or FIELD_LABELS)

    def extract(self, text: str) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for line in (text or "").splitlines():
            match = _LABEL_LINE.match(line)
            if not match:
                continue
            field_name = self.labels.get(match.group(1).strip().lower())
            if field_name and field_name not in fields:
                fields[field_name] = match.group(2)
        return fields


def normalize_premium(raw: Any) -> float:
    if isinstance(raw, bool):
        return 0.0
    if isinstance(raw, (int, float)):
        return max(0.0, float(raw))
    if isinstance(raw, str):
        cleaned = re.sub(r"[^0-9.,]", "", raw).replace(",", "")
        try:
            return max(0.0, float(cleaned))
        except ValueError:
            return 0.0
    return 0.0


def normalize_date(raw: Optional[str], *, now: datetime | None = None) -> datetime:
    """ISO first, then day/month/year; anything else falls back to `now`."""

    fallback = now or datetime.utcnow()
    if not raw or not str(raw).strip():
        return fallback
    trimmed = str(raw).strip()
    try:
        parsed = datetime.fromisoformat(trimmed.replace("Z", "+00:00"))
        return parsed.replace(tzinfo=None)
    except ValueError:
        pass
    match = _DMY.search(trimmed)
    if match:
        day, month, year = match.groups()
        if len(year) == 2:
            year = f"20{year}"
        try:
            return datetime(int(year), int(month), int(day))
        except ValueError:
            return fallback
    return fallback


def normalize_boolean(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "yes")
    return False


def normalize_currency(raw: Optional[str]) -> Currency:
    return Currency(
        normalize_choice(raw, [c.value for c in Currency], CURRENCY_ALIASES, Currency.AED.value)
    )


def normalize_business_type(raw: Optional[str]) -> BusinessType:
    return BusinessType(
        normalize_choice(
            raw,
            [b.value for b in BusinessType],
            BUSINESS_ALIASES,
            BusinessType.new_business.value,
        )
    )


def normalize_quotation_status(raw: Optional[str]) -> QuotationStatus:
    return QuotationStatus(
        normalize_choice(
            raw, [s.value for s in QuotationStatus], STATUS_ALIASES, QuotationStatus.open.value
        )
    )


def _clean(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def merge_notes(extracted: Optional[str], manual: Optional[str]) -> str:
    extra = _clean(manual)
    base = _clean(extracted)
    if base:
        return f"{base}\n{extra}" if extra else base
    return extra or ""


def with_vessel_line(notes: str, product_type: str, vessel_name: Optional[str]) -> str:
    vessel = _clean(vessel_name)
    if product_type not in VESSEL_PRODUCT_TYPES or not vessel:
        return notes
    line = f"Vessel: {vessel}"
    return f"{notes}\n{line}" if notes else line


@dataclass(frozen=True)
class ExtractedDocument:
    broker_name: Optional[str]
    insured_name: str
    product_type: str
    premium: float
    currency: Currency
    date: datetime
    status: QuotationStatus
    business_type: BusinessType
    decline_reason: Optional[str]
    notes: Optional[str]
    vessel_name: Optional[str]
    requires_pre_condition_survey: bool


def extract_document(
    text: str,
    *,
    profile: DepartmentProfile,
    extractor: FieldExtractor | None = None,
    now: datetime | None = None,
) -> ExtractedDocument:
    """Run the extractor and pass every field through its normaliser."""

    raw = (extractor or LabelledFieldExtractor()).extract(text)
    insured_name = _clean(raw.get("insured_name"))
    if not insured_name:
        raise ExtractionError("Insured name could not be extracted")

    doc = ExtractedDocument(
        broker_name=_clean(raw.get("broker_name")),
        insured_name=insured_name,
        product_type=profile.normalize_product_type(raw.get("product_type")),
        premium=normalize_premium(raw.get("premium")),
        currency=normalize_currency(raw.get("currency")),
        date=normalize_date(raw.get("date"), now=now),
        status=normalize_quotation_status(raw.get("status")),
        business_type=normalize_business_type(raw.get("business_type")),
        decline_reason=_clean(raw.get("decline_reason")),
        notes=_clean(raw.get("notes")),
        vessel_name=_clean(raw.get("vessel_name")),
        requires_pre_condition_survey=normalize_boolean(raw.get("requires_pre_condition_survey")),
    )
    logger.info(
        "document_extracted",
        extra={
            "department": profile.department.value,
            "fields": sorted(raw.keys()),
            "product_type": doc.product_type,
        },
    )
    return doc


def build_quotation_draft(
    doc: ExtractedDocument,
    *,
    broker_name: Optional[str] = None,
    notes: Optional[str] = None,
) -> dict[str, Any]:
    """Quotation fields ready for review; nothing is persisted."""

    merged = with_vessel_line(merge_notes(doc.notes, notes), doc.product_type, doc.vessel_name)
    return {
        "broker_name": _clean(broker_name) or doc.broker_name,
        "insured_name": doc.insured_name,
        "product_type": doc.product_type,
        "estimated_premium": doc.premium,
        "currency": doc.currency,
        "quotation_date": doc.date,
        "status": doc.status,
        "decline_reason": doc.decline_reason,
        "notes": merged,
        "requires_pre_condition_survey": doc.requires_pre_condition_survey,
    }


def build_order_payload(
    doc: ExtractedDocument,
    *,
    broker_name: Optional[str] = None,
    notes: Optional[str] = None,
    business_type: Optional[str] = None,
    order_date: Optional[str] = None,
) -> dict[str, Any]:
    """Order fields for an uploaded document; form values override extracted ones."""

    broker = _clean(broker_name) or doc.broker_name
    if not broker:
        raise ExtractionError(BROKER_REQUIRED_MESSAGE)

    merged = with_vessel_line(merge_notes(doc.notes, notes), doc.product_type, doc.vessel_name)
    return {
        "broker_name": broker,
        "insured_name": doc.insured_name,
        "product_type": doc.product_type,
        "business_type": (
            normalize_business_type(business_type) if _clean(business_type) else doc.business_type
        ),
        "premium": doc.premium,
        "currency": doc.currency,
        "order_date": normalize_date(order_date, now=doc.date) if _clean(order_date) else doc.date,
        "statuses": list(FIRM_ORDER_INITIAL_STATUSES),
        "notes": merged or None,
        "requires_pre_condition_survey": doc.requires_pre_condition_survey,
    }
