from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID


@dataclass(slots=True, frozen=True)
class PaymentCompleted:
    payment_reference: str
    email: str | None = None
    metadata: dict[str, object] | None = None
    payment_session_id: str | None = None


@dataclass(slots=True, frozen=True)
class PaymentRefunded:
    payment_reference: str


@dataclass(slots=True)
class IssuedCode:
    code_id: UUID
    code: str
    status: str
    customer_email: str | None
    payment_reference: str | None
    created: bool
    expires_at: datetime | None = None


@dataclass(slots=True)
class RedeemResult:
    code_id: UUID
    token: str
    holder_name: str | None = None


@dataclass(slots=True)
class StoredDiscountCode:
    code: str
    payment_session_id: str
    created: bool
    email: str | None = None
