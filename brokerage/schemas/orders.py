from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from brokerage.models.domain import (
    ORDER_STATUS_VALUES,
    BusinessType,
    CoverGroup,
    Currency,
    Department,
)


def _validate_status_tags(v: Optional[List[str]]) -> Optional[List[str]]:
    if v is None:
        return v
    tags = [str(t).strip() for t in v]
    if not tags:
        raise ValueError("At least one status is required")
    unknown = [t for t in tags if t not in ORDER_STATUS_VALUES]
    if unknown:
        raise ValueError(f"Unknown order status: {unknown[0]}")
    return list(dict.fromkeys(tags))


class OrderBase(BaseModel):
    broker_name: str = Field(..., min_length=1, max_length=255)
    insured_name: str = Field(..., min_length=1, max_length=255)
    product_type: str = Field(..., min_length=1, max_length=255)
    cover_group: Optional[CoverGroup] = None
    business_type: BusinessType = BusinessType.new_business
    premium: float = Field(..., ge=0)
    currency: Currency = Currency.AED
    order_date: Optional[datetime] = None
    notes: Optional[str] = None
    requires_pre_condition_survey: bool = False


class OrderCreate(OrderBase):
    # Omitted statuses default to the firm-order starting set.
    statuses: Optional[List[str]] = None

    @field_validator("statuses")
    @classmethod
    def validate_statuses(cls, v):
        return _validate_status_tags(v)


class OrderUpdate(BaseModel):
    broker_name: Optional[str] = Field(None, min_length=1, max_length=255)
    insured_name: Optional[str] = Field(None, min_length=1, max_length=255)
    product_type: Optional[str] = Field(None, min_length=1, max_length=255)
    cover_group: Optional[CoverGroup] = None
    business_type: Optional[BusinessType] = None
    premium: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    order_date: Optional[datetime] = None
    statuses: Optional[List[str]] = None
    notes: Optional[str] = None
    requires_pre_condition_survey: Optional[bool] = None

    @field_validator("statuses")
    @classmethod
    def validate_statuses(cls, v):
        return _validate_status_tags(v)


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    department: Department
    quotation_id: Optional[int] = None
    broker_name: str
    insured_name: str
    product_type: str
    cover_group: Optional[CoverGroup] = None
    business_type: BusinessType
    premium: float
    currency: Currency
    order_date: datetime
    statuses: List[str]
    notes: Optional[str] = None
    requires_pre_condition_survey: bool
    created_by: Optional[int] = None
    year: int
    last_updated: datetime
    is_closed: bool = False


class OrderUpdateResponse(BaseModel):
    order: OrderRead
    has_moved_to_closed: bool


class StatusLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    statuses: List[str]
    timestamp: datetime
    notes: Optional[str] = None


class BulkDeleteRequest(BaseModel):
    ids: List[int] = Field(..., min_length=1)


class BulkDeleteResponse(BaseModel):
    deleted_ids: List[int] = Field(default_factory=list)
    missing_ids: List[int] = Field(default_factory=list)
