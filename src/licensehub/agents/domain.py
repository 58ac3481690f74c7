"""Agents domain: agents, ledger entries, commission arithmetic and ledger events."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from licensehub.core.errors import BusinessRuleError, NotFound
from licensehub.domain import DomainEvent

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")


def compute_commission(sale_price: Decimal, commission_percent: Decimal) -> Decimal:
    """sale_price × percent / 100, rounded half-up to cents."""
    return (sale_price * commission_percent / HUNDRED).quantize(CENTS, rounding=ROUND_HALF_UP)


class AgentNotFound(NotFound):
    code = "agent_not_found"

    def __init__(self, agent_id: int) -> None:
        super().__init__(f"Agent {agent_id} not found")
        self.agent_id = agent_id


class CustomerNotFound(NotFound):
    code = "customer_not_found"

    def __init__(self, customer_id: int) -> None:
        super().__init__(f"Customer {customer_id} not found")
        self.customer_id = customer_id


class InsufficientBalance(BusinessRuleError):
    code = "insufficient_balance"

    def __init__(self, requested: Decimal, balance: Decimal) -> None:
        super().__init__(f"Amount {requested} exceeds balance {balance}")
        self.requested = requested
        self.balance = balance


@dataclass
class Agent:
    id: int
    name: str
    phone: str
    commission_percent: Decimal
    balance: Decimal
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "commissionPercent": self.commission_percent,
            "balance": self.balance,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Sale:
    """Ledger credit. commission_percent is the agent's rate when the sale was recorded."""

    id: int
    agent_id: int
    customer_id: Optional[int]
    sale_price: Decimal
    commission_percent: Decimal
    commission_amount: Decimal
    note: Optional[str]
    created_at: datetime
    customer_name: Optional[str] = None
    product_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "customerId": self.customer_id,
            "customerName": self.customer_name,
            "productId": self.product_id,
            "salePrice": self.sale_price,
            "commissionPercent": self.commission_percent,
            "commissionAmount": self.commission_amount,
            "note": self.note,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class Payout:
    """Ledger debit."""

    id: int
    agent_id: int
    amount: Decimal
    note: Optional[str]
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "agentId": self.agent_id,
            "amount": self.amount,
            "note": self.note,
            "createdAt": self.created_at,
        }


@dataclass(frozen=True)
class AgentTotals:
    """earned/paid are summed from ledger rows; balance is the cached column."""

    agent_id: int
    earned: Decimal
    paid: Decimal
    balance: Decimal

    @property
    def derived_balance(self) -> Decimal:
        return self.earned - self.paid

    @property
    def consistent(self) -> bool:
        return self.balance == self.derived_balance

    def to_dict(self) -> dict[str, Any]:
        return {"earned": self.earned, "paid": self.paid, "balance": self.balance}


@dataclass(frozen=True)
class SaleRecorded(DomainEvent):
    sale_id: int
    agent_id: int
    sale_price: Decimal
    commission_percent: Decimal
    commission_amount: Decimal


@dataclass(frozen=True)
class PayoutRecorded(DomainEvent):
    payout_id: int
    agent_id: int
    amount: Decimal
