from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _FromAttributes(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class QuotationMetricsRead(_FromAttributes):
    total: int = 0
    open: int = 0
    confirmed: int = 0
    declined: int = 0
    estimated_premium: float = 0.0


class OrderMetricsRead(_FromAttributes):
    total: int = 0
    new_business: int = 0
    renewal: int = 0
    total_premium: float = 0.0
    new_business_premium: float = 0.0
    renewal_premium: float = 0.0


class DepartmentMetricsRead(_FromAttributes):
    department: str
    quotations: QuotationMetricsRead
    orders: OrderMetricsRead


class TotalsMetricsRead(_FromAttributes):
    quotations: QuotationMetricsRead
    orders: OrderMetricsRead


class InsuredSummaryRead(_FromAttributes):
    insured_name: str
    departments: list[DepartmentMetricsRead] = Field(default_factory=list)
    totals: TotalsMetricsRead
    primary_currency: str


class InsuredNamesRead(BaseModel):
    year: int
    names: list[str] = Field(default_factory=list)


class BrokerAnalyticsRead(_FromAttributes):
    name: str
    quotations_count: int
    confirmed_count: int
    declined_count: int
    open_count: int
    hit_ratio: str
    orders_count: int
    premium: float


class ProductAnalyticsRead(_FromAttributes):
    name: str
    quotations_count: int
    confirmed_count: int
    premium: float
    avg_premium: float


class BusinessTypeAnalyticsRead(_FromAttributes):
    name: str
    count: int
    premium: float
    avg_premium: float


class TimeSeriesPointRead(_FromAttributes):
    date: str
    new_quotations: int
    confirmed_quotations: int
    premium: float


class OverviewRead(_FromAttributes):
    total_quotations: int
    open_quotations: int
    confirmed_quotations: int
    declined_quotations: int
    conversion_rate: str
    avg_estimated_premium: float
    total_orders_count: int
    total_premium: float
    new_business_count: int
    renewal_count: int
    new_business_premium: float
    renewal_premium: float


class ManagementDashboardRead(_FromAttributes):
    department: str
    primary_currency: str
    overview: OverviewRead
    brokers: list[BrokerAnalyticsRead] = Field(default_factory=list)
    products: list[ProductAnalyticsRead] = Field(default_factory=list)
    business_types: list[BusinessTypeAnalyticsRead] = Field(default_factory=list)
    time_series: list[TimeSeriesPointRead] = Field(default_factory=list)


class QuotationAnalysisRead(_FromAttributes):
    department: str
    start: Optional[str] = None
    end: Optional[str] = None
    primary_currency: str
    overview: OverviewRead
    hit_ratio: str
    top_brokers: list[BrokerAnalyticsRead] = Field(default_factory=list)
    top_products: list[ProductAnalyticsRead] = Field(default_factory=list)
    business_types: list[BusinessTypeAnalyticsRead] = Field(default_factory=list)
