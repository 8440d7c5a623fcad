# ruff: noqa: E501
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    event,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from brokerage.database import Base


class Department(PyEnum):
    marine = "Marine"
    property_engineering = "Property & Engineering"
    liability_financial = "Liability & Financial"


class RoleName(PyEnum):
    admin = "admin"
    staff = "staff"


class QuotationStatus(PyEnum):
    open = "Open"
    confirmed = "Confirmed"
    decline = "Decline"


class BusinessType(PyEnum):
    new_business = "New Business"
    renewal = "Renewal"


class Currency(PyEnum):
    AED = "AED"
    USD = "USD"
    EUR = "EUR"


class CoverGroup(PyEnum):
    engineering = "ENGINEERING"
    property = "PROPERTY"


class OrderStatusTag(PyEnum):
    firm_order_received = "Firm Order Received"
    coi_issued = "COI Issued"
    kyc_pending = "KYC Pending"
    kyc_completed = "KYC Completed"
    policy_issued = "Policy Issued"


POLICY_ISSUED = OrderStatusTag.policy_issued.value
FIRM_ORDER_INITIAL_STATUSES = [
    OrderStatusTag.firm_order_received.value,
    OrderStatusTag.kyc_pending.value,
]
ORDER_STATUS_VALUES = [t.value for t in OrderStatusTag]


def _value_enum(enum_cls: type[PyEnum]) -> Enum:
    # Persist the human-readable value ("Confirmed", "Marine") rather than the member name.
    return Enum(
        enum_cls,
        native_enum=False,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    department: Mapped[Department] = mapped_column(_value_enum(Department), nullable=False)
    role: Mapped[RoleName] = mapped_column(
        _value_enum(RoleName), nullable=False, default=RoleName.staff
    )
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class AppSetting(Base):
    __tablename__ = "app_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    value: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )


class Quotation(Base):
    __tablename__ = "quotations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department: Mapped[Department] = mapped_column(
        _value_enum(Department), nullable=False, index=True
    )
    broker_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    insured_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_type: Mapped[str] = mapped_column(String(255), nullable=False)
    cover_group: Mapped[CoverGroup | None] = mapped_column(_value_enum(CoverGroup), nullable=True)
    estimated_premium: Mapped[float] = mapped_column(
        Numeric(14, 2, asdecimal=False), nullable=False, default=0
    )
    currency: Mapped[Currency] = mapped_column(
        _value_enum(Currency), nullable=False, default=Currency.AED
    )
    # Naive local timestamps: date-range filters compare the calendar-date portion only.
    quotation_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    status: Mapped[QuotationStatus] = mapped_column(
        _value_enum(QuotationStatus), nullable=False, default=QuotationStatus.open, index=True
    )
    decline_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_pre_condition_survey: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    year: Mapped[int] = mapped_column(SmallInteger, nullable=False, index=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @validates("estimated_premium")
    def _validate_estimated_premium(self, key, value):
        if value is None or float(value) < 0:
            raise ValueError("Estimated premium must be a non-negative number")
        return value


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    department: Mapped[Department] = mapped_column(
        _value_enum(Department), nullable=False, index=True
    )
    # Set when the order was derived from a confirmed quotation.
    quotation_id: Mapped[int | None] = mapped_column(
        ForeignKey("quotations.id", ondelete="SET NULL"), nullable=True, index=True
    )
    broker_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    insured_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    product_type: Mapped[str] = mapped_column(String(255), nullable=False)
    cover_group: Mapped[CoverGroup | None] = mapped_column(_value_enum(CoverGroup), nullable=True)
    business_type: Mapped[BusinessType] = mapped_column(
        _value_enum(BusinessType), nullable=False, default=BusinessType.new_business
    )
    premium: Mapped[float] = mapped_column(Numeric(14, 2, asdecimal=False), nullable=False)
    currency: Mapped[Currency] = mapped_column(
        _value_enum(Currency), nullable=False, default=Currency.AED
    )
    order_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    statuses: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_pre_condition_survey: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    year: Mapped[int] = mapped_column(SmallInteger, nullable=False, index=True)
    last_updated: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    status_logs = relationship(
        "StatusLog",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by=lambda: [StatusLog.timestamp, StatusLog.id],
    )

    @validates("statuses")
    def _validate_statuses(self, key, value):
        tags = list(value or [])
        if not tags:
            raise ValueError("Order statuses must contain at least one status")
        unknown = [t for t in tags if t not in ORDER_STATUS_VALUES]
        if unknown:
            raise ValueError(f"Unknown order status: {unknown[0]}")
        # Keep first occurrence order; statuses form a set.
        return list(dict.fromkeys(tags))

    @property
    def is_closed(self) -> bool:
        return POLICY_ISSUED in (self.statuses or [])


class StatusLog(Base):
    __tablename__ = "status_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    statuses: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=datetime.utcnow)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    order = relationship("Order", back_populates="status_logs")


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    action: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    payload_json: Mapped[str | None] = mapped_column(Text)
    request_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    ip: Mapped[str | None] = mapped_column(String(64), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String(256), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


def _ensure_year_stamped(mapper, connection, target) -> None:
    # Rows must carry the active year they were created under; it is never recomputed.
    if target.year is None:
        raise ValueError(f"{type(target).__name__} must be stamped with the active year")


event.listen(Quotation, "before_insert", _ensure_year_stamped)
event.listen(Order, "before_insert", _ensure_year_stamped)
