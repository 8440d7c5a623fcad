from brokerage.schemas.analytics import (
    BrokerAnalyticsRead,
    BusinessTypeAnalyticsRead,
    InsuredNamesRead,
    InsuredSummaryRead,
    ManagementDashboardRead,
    OverviewRead,
    ProductAnalyticsRead,
    QuotationAnalysisRead,
    TimeSeriesPointRead,
)
from brokerage.schemas.auth import Token
from brokerage.schemas.orders import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    OrderUpdateResponse,
    StatusLogRead,
)
from brokerage.schemas.quotations import (
    QuotationCreate,
    QuotationDraft,
    QuotationRead,
    QuotationUpdate,
    QuotationWriteResponse,
)
from brokerage.schemas.settings import YearRead, YearsRead, YearUpdate
from brokerage.schemas.users import SignupRequest, UserCreate, UserRead

__all__ = [
    "BrokerAnalyticsRead",
    "BulkDeleteRequest",
    "BulkDeleteResponse",
    "BusinessTypeAnalyticsRead",
    "InsuredNamesRead",
    "InsuredSummaryRead",
    "ManagementDashboardRead",
    "OrderCreate",
    "OrderRead",
    "OrderUpdate",
    "OrderUpdateResponse",
    "OverviewRead",
    "ProductAnalyticsRead",
    "QuotationAnalysisRead",
    "QuotationCreate",
    "QuotationDraft",
    "QuotationRead",
    "QuotationUpdate",
    "QuotationWriteResponse",
    "SignupRequest",
    "StatusLogRead",
    "TimeSeriesPointRead",
    "Token",
    "UserCreate",
    "UserRead",
    "YearRead",
    "YearUpdate",
    "YearsRead",
]
