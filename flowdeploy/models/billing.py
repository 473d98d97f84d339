"""
Subscription & Billing Models
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List

from flowdeploy.constants import DEFAULT_CURRENCY


@dataclass
class SubscriptionWarning:
    """A single warning from /subscription/warnings."""

    severity: str
    message: str
    action_required: bool = False
    days_until_deletion: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SubscriptionWarning":
        return cls(
            severity=data.get("severity", "info"),
            message=data.get("message", ""),
            action_required=bool(data.get("action_required", False)),
            days_until_deletion=data.get("days_until_deletion"),
        )


@dataclass
class SubscriptionWarnings:
    """Warnings envelope."""

    has_warnings: bool = False
    warnings: List[SubscriptionWarning] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SubscriptionWarnings":
        data = data or {}
        warnings = [SubscriptionWarning.from_dict(w) for w in data.get("warnings", [])]
        return cls(has_warnings=bool(data.get("has_warnings", warnings)), warnings=warnings)


@dataclass
class PaymentOrder:
    """Order created by /payments/create-order, handed to the external checkout."""

    order_id: str
    amount: int
    currency: str = DEFAULT_CURRENCY
    key_id: str = ""
    plan: str = ""

    @property
    def display_amount(self) -> str:
        """Amount in major units (the gateway works in paise/cents)."""
        return f"{self.amount / 100:.2f} {self.currency}"

    @classmethod
    def from_dict(cls, data: Dict[str, Any], plan: str = "") -> "PaymentOrder":
        return cls(
            order_id=data["order_id"],
            amount=int(data.get("amount", 0)),
            currency=data.get("currency") or DEFAULT_CURRENCY,
            key_id=data.get("key_id", ""),
            plan=plan,
        )
