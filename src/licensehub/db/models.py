"""Relational schema: agents, customers, sales, payouts."""
from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    Text,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator, TypeEngine


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Fixed(TypeDecorator):
    """Fixed-point decimal column, always read back as a Decimal quantized to ``scale`` places.

    PostgreSQL stores NUMERIC natively. SQLite has no decimal type, so values go
    in as REAL and are re-quantized on the way out.
    """

    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int = 14, scale: int = 2) -> None:
        super().__init__(precision=precision, scale=scale)
        self.precision = precision
        self.scale = scale
        self.quantum = Decimal(1).scaleb(-scale)

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[Any]:
        if dialect.name == "sqlite":
            return dialect.type_descriptor(Numeric(self.precision, self.scale, asdecimal=False))
        return dialect.type_descriptor(Numeric(self.precision, self.scale))

    def process_bind_param(self, value: Any, dialect: Dialect) -> Any:
        if value is None:
            return None
        return Decimal(value).quantize(self.quantum)

    def process_result_value(self, value: Any, dialect: Dialect) -> Optional[Decimal]:
        if value is None:
            return None
        return Decimal(str(value)).quantize(self.quantum)


class Base(DeclarativeBase):
    pass


class AgentRow(Base):
    __tablename__ = "agents"
    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_agents_balance_non_negative"),
        CheckConstraint(
            "commission_percent >= 0 AND commission_percent <= 100",
            name="ck_agents_commission_percent_range",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[str] = mapped_column(Text, nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(Fixed(5, 2), nullable=False, default=Decimal("0"))
    balance: Mapped[Decimal] = mapped_column(Fixed(14, 2), nullable=False, default=Decimal("0"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class CustomerRow(Base):
    __tablename__ = "customers"
    __table_args__ = (
        Index("idx_customer_name", "customer_name"),
        Index("idx_expire_at", "expire_at"),
        Index("idx_customers_agent_id", "agent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    customer_name: Mapped[str] = mapped_column(Text, nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(Text)
    product_id: Mapped[str] = mapped_column(Text, nullable=False)
    license_key: Mapped[str] = mapped_column(Text, nullable=False)
    machine_id: Mapped[Optional[str]] = mapped_column(Text)
    expire_at: Mapped[Optional[date]] = mapped_column(Date)
    issued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    popup_message: Mapped[Optional[str]] = mapped_column(Text)
    agent_id: Mapped[Optional[int]] = mapped_column(ForeignKey("agents.id", ondelete="SET NULL"))


class SaleRow(Base):
    __tablename__ = "sales"
    __table_args__ = (
        CheckConstraint("sale_price > 0", name="ck_sales_sale_price_positive"),
        CheckConstraint("commission_amount >= 0", name="ck_sales_commission_non_negative"),
        Index("idx_sales_agent_id_created_at", "agent_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    customer_id: Mapped[Optional[int]] = mapped_column(ForeignKey("customers.id", ondelete="SET NULL"))
    sale_price: Mapped[Decimal] = mapped_column(Fixed(14, 2), nullable=False)
    commission_percent: Mapped[Decimal] = mapped_column(Fixed(5, 2), nullable=False)
    commission_amount: Mapped[Decimal] = mapped_column(Fixed(14, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)


class PayoutRow(Base):
    __tablename__ = "payouts"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payouts_amount_positive"),
        Index("idx_payouts_agent_id_created_at", "agent_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[int] = mapped_column(ForeignKey("agents.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Fixed(14, 2), nullable=False)
    note: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
