"""Domain records shared by the lifecycle service and its storage gateways.

Amounts are integers in minor currency units (cents); floats never appear.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

# Largest value a BIGINT column holds.
INT64_MAX = 2**63 - 1


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class PaymentMethod(str, Enum):
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"


@dataclass(slots=True)
class Payment:
    """A tracked payment intent and its lifecycle status."""

    id: UUID
    merchant_id: UUID
    customer_id: UUID
    amount: int
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    created_at: datetime
    updated_at: datetime
    description: str = ""
    reference: str | None = None
    completed_at: datetime | None = None


@dataclass(slots=True)
class Merchant:
    """Account on whose behalf payments are created."""

    id: UUID
    name: str
    email: str
    api_key: str = field(repr=False)
    is_active: bool
    created_at: datetime
    updated_at: datetime


@dataclass(slots=True)
class Customer:
    """The payer referenced by a payment."""

    id: UUID
    name: str
    email: str
    phone: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
