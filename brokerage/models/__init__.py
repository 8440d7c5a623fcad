from brokerage.models.domain import (
    FIRM_ORDER_INITIAL_STATUSES,
    ORDER_STATUS_VALUES,
    POLICY_ISSUED,
    AppSetting,
    AuditLog,
    BusinessType,
    CoverGroup,
    Currency,
    Department,
    Order,
    OrderStatusTag,
    Quotation,
    QuotationStatus,
    RoleName,
    StatusLog,
    User,
)

__all__ = [
    "FIRM_ORDER_INITIAL_STATUSES",
    "ORDER_STATUS_VALUES",
    "POLICY_ISSUED",
    "AppSetting",
    "AuditLog",
    "BusinessType",
    "CoverGroup",
    "Currency",
    "Department",
    "Order",
    "OrderStatusTag",
    "Quotation",
    "QuotationStatus",
    "RoleName",
    "StatusLog",
    "User",
]
