"""Payment lifecycle logic.

Validates creation preconditions, enforces the status state machine and
delegates persistence to the injected storage gateways. The service keeps no
mutable state of its own, so one instance serves every concurrent request.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Callable
from uuid import UUID, uuid4

from merchantpay.common.errors import (
    CustomerNotFoundError,
    InvalidTransitionError,
    MerchantInactiveError,
    MerchantNotFoundError,
    PaymentNotFoundError,
    StatusConflictError,
    ValidationError,
    wrap_storage_errors,
)
from merchantpay.common.logging import logger as default_logger
from merchantpay.common.logging import payment_id_ctx
from merchantpay.common.metrics import (
    payment_transition_rejected_total,
    payment_transitions_total,
    payments_created_total,
)
from merchantpay.common.state_machine import INITIAL_STATUS, validate_transition
from merchantpay.common.tracing import get_tracer
from merchantpay.services.payments.entities import INT64_MAX, Payment, PaymentMethod, PaymentStatus, utcnow
from merchantpay.services.payments.repositories import (
    CustomerRepository,
    MerchantRepository,
    PaymentRepository,
)

tracer = get_tracer(__name__)

CURRENCY_PATTERN = re.compile(r"[A-Za-z]{3}")


@dataclass(frozen=True, slots=True)
class CreatePaymentRequest:
    """Input for `PaymentService.create_payment`; its shape is re-checked there."""

    merchant_id: UUID
    customer_id: UUID
    amount: int
    currency: str
    method: PaymentMethod
    description: str = ""
    reference: str | None = None


def _check_shape(req: CreatePaymentRequest) -> None:
    # Callers other than the HTTP schema (scripts, tests) get the same bounds.
    if isinstance(req.amount, bool) or not isinstance(req.amount, int) or not 0 < req.amount <= INT64_MAX:
        raise ValidationError("amount must be a positive integer in minor units")
    if not isinstance(req.currency, str) or not CURRENCY_PATTERN.fullmatch(req.currency):
        raise ValidationError("currency must be a 3-letter code")
    try:
        PaymentMethod(req.method)
    except ValueError:
        raise ValidationError(f"unsupported payment method: {req.method}") from None


class PaymentService:
    """Owns payment creation and the pending -> completed/cancelled lifecycle."""

    def __init__(
        self,
        payments: PaymentRepository,
        merchants: MerchantRepository,
        customers: CustomerRepository,
        clock: Callable[[], datetime] = utcnow,
        service_name: str = "payments",
        log: logging.Logger | None = None,
    ) -> None:
        self.payments = payments
        self.merchants = merchants
        self.customers = customers
        self.clock = clock
        self.service_name = service_name
        self.log = log or default_logger

    def create_payment(self, req: CreatePaymentRequest) -> Payment:
        """Create a pending payment for an active merchant and known customer.

        A malformed request raises ValidationError before any lookup. The
        preconditions are then checked in order and the first failure wins, so
        an inactive merchant is reported even when the customer is also missing.
        """

        _check_shape(req)

        with wrap_storage_errors("get merchant"):
            merchant = self.merchants.get_by_id(req.merchant_id)
        if merchant is None:
            raise MerchantNotFoundError()
        if not merchant.is_active:
            raise MerchantInactiveError()

        with wrap_storage_errors("get customer"):
            customer = self.customers.get_by_id(req.customer_id)
        if customer is None:
            raise CustomerNotFoundError()

        now = self.clock()
        payment = Payment(
            id=uuid4(),
            merchant_id=req.merchant_id,
            customer_id=req.customer_id,
            amount=req.amount,
            currency=req.currency.upper(),
            method=PaymentMethod(req.method),
            status=PaymentStatus(INITIAL_STATUS),
            description=req.description or "",
            reference=req.reference or None,
            created_at=now,
            updated_at=now,
        )
        with wrap_storage_errors("create payment"):
            self.payments.create(payment)

        payment_id_ctx.set(str(payment.id))
        payments_created_total.labels(service=self.service_name).inc()
        self.log.info(
            "payment created payment_id=%s merchant_id=%s amount=%s currency=%s",
            payment.id,
            payment.merchant_id,
            payment.amount,
            payment.currency,
        )
        return payment

    def get_payment(self, payment_id: UUID) -> Payment:
        with wrap_storage_errors("get payment"):
            payment = self.payments.get_by_id(payment_id)
        if payment is None:
            raise PaymentNotFoundError()
        return payment

    def get_payment_by_reference(self, reference: str) -> Payment:
        with wrap_storage_errors("get payment by reference"):
            payment = self.payments.get_by_reference(reference)
        if payment is None:
            raise PaymentNotFoundError()
        return payment

    def process_payment(self, payment_id: UUID) -> Payment:
        """Complete a pending payment.

        No external processor is called; authorization always succeeds once
        the payment is pending.
        """

        return self._transition(payment_id, PaymentStatus.COMPLETED, "process")

    def cancel_payment(self, payment_id: UUID) -> Payment:
        return self._transition(payment_id, PaymentStatus.CANCELLED, "cancel")

    def get_merchant_payments(self, merchant_id: UUID, limit: int, offset: int) -> list[Payment]:
        with wrap_storage_errors("get merchant payments"):
            return self.payments.list_by_merchant(merchant_id, limit, offset)

    def get_customer_payments(self, customer_id: UUID, limit: int, offset: int) -> list[Payment]:
        with wrap_storage_errors("get customer payments"):
            return self.payments.list_by_customer(customer_id, limit, offset)

    def _transition(self, payment_id: UUID, target: PaymentStatus, operation: str) -> Payment:
        """Move a payment along one state-machine edge.

        The status check here gives the caller a precise error; the
        conditional write underneath is what actually arbitrates concurrent
        callers racing on the same payment.
        """

        payment_id_ctx.set(str(payment_id))
        with tracer.start_as_current_span(f"payment.{operation}") as span:
            span.set_attribute("payment.id", str(payment_id))
            payment = self.get_payment(payment_id)
            span.set_attribute("payment.status", payment.status.value)
            try:
                validate_transition(payment.status.value, target.value)
            except InvalidTransitionError as exc:
                raise self._rejected(payment.status.value, target, operation) from exc

            try:
                with wrap_storage_errors("update payment status"):
                    updated = self.payments.update_status(payment_id, target, expected=payment.status)
            except StatusConflictError as exc:
                raise self._rejected(exc.current, target, operation) from exc

        payment_transitions_total.labels(service=self.service_name, to_status=target.value).inc()
        self.log.info("payment transitioned payment_id=%s from=%s to=%s", payment_id, payment.status.value, target.value)
        return updated

    def _rejected(self, current: str, target: PaymentStatus, operation: str) -> InvalidTransitionError:
        payment_transition_rejected_total.labels(service=self.service_name, operation=operation).inc()
        self.log.warning("payment transition rejected status=%s operation=%s", current, operation)
        return InvalidTransitionError(
            current,
            target.value,
            message=f"payment status is {current}, cannot {operation}",
        )
