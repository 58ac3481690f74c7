"""Licenses domain: the customer/license record."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional


@dataclass(frozen=True)
class License:
    """Issued license. Stored as-is; expiry and machine binding are not enforced here."""

    id: int
    customer_name: str
    phone: Optional[str]
    product_id: str
    license_key: str
    machine_id: Optional[str]
    expire_at: Optional[date]
    issued_at: datetime
    popup_message: Optional[str]
    agent_id: Optional[int]
    agent_name: Optional[str] = None
    agent_phone: Optional[str] = None
    agent_commission_percent: Optional[Decimal] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "customerName": self.customer_name,
            "phone": self.phone,
            "productId": self.product_id,
            "licenseKey": self.license_key,
            "machineId": self.machine_id,
            "expireAt": self.expire_at,
            "issuedAt": self.issued_at,
            "popupMessage": self.popup_message,
            "agentId": self.agent_id,
            "agentName": self.agent_name,
            "agentPhone": self.agent_phone,
            "agentCommissionPercent": self.agent_commission_percent,
        }
