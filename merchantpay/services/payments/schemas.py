"""API request/response schemas for payment endpoints."""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from merchantpay.services.payments.entities import INT64_MAX, PaymentMethod, PaymentStatus
from merchantpay.services.payments.service import CreatePaymentRequest

DEFAULT_PAGE_LIMIT = 20


class PaymentCreateRequest(BaseModel):
    """Payment creation payload; malformed bodies never reach the service."""

    merchant_id: UUID
    customer_id: UUID
    amount: int = Field(gt=0, le=INT64_MAX, strict=True, description="Amount in minor currency units")
    currency: str = Field(pattern=r"^[A-Za-z]{3}$")
    method: PaymentMethod
    description: str = Field(default="", max_length=1000)
    reference: str | None = Field(default=None, max_length=255)

    def to_command(self) -> CreatePaymentRequest:
        return CreatePaymentRequest(
            merchant_id=self.merchant_id,
            customer_id=self.customer_id,
            amount=self.amount,
            currency=self.currency,
            method=self.method,
            description=self.description,
            reference=self.reference,
        )


class PaymentResponse(BaseModel):
    """Outward representation of a payment."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    merchant_id: UUID
    customer_id: UUID
    amount: int
    currency: str
    method: PaymentMethod
    status: PaymentStatus
    description: str
    reference: str | None = None
    created_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class ApiResponse(BaseModel):
    """Envelope shared by every `/api` response, success or error."""

    success: bool
    data: Any = None
    message: str | None = None
    error: str | None = None
    request_id: str | None = None

    def body(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def sanitize_pagination(
    limit: str | None,
    offset: str | None,
    default_limit: int = DEFAULT_PAGE_LIMIT,
) -> tuple[int, int]:
    """Coerce raw query values.

    A bad, non-positive or out-of-range limit becomes the default; a bad,
    negative or out-of-range offset becomes 0.
    """

    parsed_limit = _parse_int(limit)
    parsed_offset = _parse_int(offset)
    if parsed_limit is None or not 0 < parsed_limit <= INT64_MAX:
        parsed_limit = default_limit
    if parsed_offset is None or not 0 <= parsed_offset <= INT64_MAX:
        parsed_offset = 0
    return parsed_limit, parsed_offset
