from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from brokerage.models.domain import CoverGroup, Currency, Department, QuotationStatus
from brokerage.schemas.orders import OrderRead


class QuotationBase(BaseModel):
    broker_name: str = Field(..., min_length=1, max_length=255)
    insured_name: str = Field(..., min_length=1, max_length=255)
    product_type: str = Field(..., min_length=1, max_length=255)
    cover_group: Optional[CoverGroup] = None
    estimated_premium: float = Field(..., ge=0)
    currency: Currency = Currency.AED
    quotation_date: Optional[datetime] = None
    status: QuotationStatus = QuotationStatus.open
    decline_reason: Optional[str] = None
    notes: Optional[str] = None
    requires_pre_condition_survey: bool = False


class QuotationCreate(QuotationBase):
    pass


class QuotationUpdate(BaseModel):
    broker_name: Optional[str] = Field(None, min_length=1, max_length=255)
    insured_name: Optional[str] = Field(None, min_length=1, max_length=255)
    product_type: Optional[str] = Field(None, min_length=1, max_length=255)
    cover_group: Optional[CoverGroup] = None
    estimated_premium: Optional[float] = Field(None, ge=0)
    currency: Optional[Currency] = None
    quotation_date: Optional[datetime] = None
    status: Optional[QuotationStatus] = None
    decline_reason: Optional[str] = None
    notes: Optional[str] = None
    requires_pre_condition_survey: Optional[bool] = None


class QuotationRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    department: Department
    broker_name: str
    insured_name: str
    product_type: str
    cover_group: Optional[CoverGroup] = None
    estimated_premium: float
    currency: Currency
    quotation_date: datetime
    status: QuotationStatus
    decline_reason: Optional[str] = None
    notes: Optional[str] = None
    requires_pre_condition_survey: bool
    created_by: Optional[int] = None
    year: int
    last_updated: datetime


class QuotationWriteResponse(BaseModel):
    """`order` is set when the write confirmed the quotation and derived its firm order."""

    quotation: QuotationRead
    order: Optional[OrderRead] = None


class QuotationDraft(BaseModel):
    broker_name: Optional[str] = None
    insured_name: str
    product_type: str
    estimated_premium: float
    currency: Currency
    quotation_date: datetime
    status: QuotationStatus
    decline_reason: Optional[str] = None
    notes: str = ""
    requires_pre_condition_survey: bool = False
