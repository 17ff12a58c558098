"""In-memory storage gateways for tests and local runs.

Records are copied on the way in and on the way out to mimic database
detachment. A single lock per store makes every operation atomic, which is
what gives `update_status(expected=...)` its compare-and-swap semantics.
"""

import copy
from dataclasses import replace
from datetime import datetime
from threading import Lock
from typing import Callable
from uuid import UUID

from merchantpay.common.errors import (
    CustomerNotFoundError,
    DuplicateReferenceError,
    MerchantNotFoundError,
    PaymentNotFoundError,
    StatusConflictError,
    StorageError,
)
from merchantpay.services.payments.entities import Customer, Merchant, Payment, PaymentStatus, utcnow
from merchantpay.services.payments.repositories import (
    CustomerRepository,
    MerchantRepository,
    PaymentRepository,
)


def _page(payments: list[Payment], limit: int, offset: int) -> list[Payment]:
    ordered = sorted(payments, key=lambda p: (p.created_at, str(p.id)), reverse=True)
    return [copy.deepcopy(p) for p in ordered[offset : offset + limit]]


class InMemoryPaymentRepository(PaymentRepository):
    """Dict-backed payments keyed by id, with a unique reference index."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._payments: dict[UUID, Payment] = {}
        self._by_reference: dict[str, UUID] = {}

    def create(self, payment: Payment) -> None:
        with self._lock:
            if payment.id in self._payments:
                raise StorageError(f"payment {payment.id} already exists")
            if payment.reference and payment.reference in self._by_reference:
                raise DuplicateReferenceError(payment.reference)
            self._payments[payment.id] = copy.deepcopy(payment)
            if payment.reference:
                self._by_reference[payment.reference] = payment.id

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        with self._lock:
            payment = self._payments.get(payment_id)
            return copy.deepcopy(payment) if payment else None

    def get_by_reference(self, reference: str) -> Payment | None:
        with self._lock:
            payment_id = self._by_reference.get(reference)
            if payment_id is None:
                return None
            return copy.deepcopy(self._payments[payment_id])

    def update_status(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        *,
        expected: PaymentStatus | None = None,
    ) -> Payment:
        with self._lock:
            current = self._payments.get(payment_id)
            if current is None:
                raise PaymentNotFoundError()
            if expected is not None and current.status != expected:
                raise StatusConflictError(current.status.value, expected.value)
            now = self._clock()
            updated = replace(
                current,
                status=status,
                updated_at=now,
                completed_at=now if status == PaymentStatus.COMPLETED else None,
            )
            self._payments[payment_id] = updated
            return copy.deepcopy(updated)

    def list_by_merchant(self, merchant_id: UUID, limit: int, offset: int) -> list[Payment]:
        with self._lock:
            return _page([p for p in self._payments.values() if p.merchant_id == merchant_id], limit, offset)

    def list_by_customer(self, customer_id: UUID, limit: int, offset: int) -> list[Payment]:
        with self._lock:
            return _page([p for p in self._payments.values() if p.customer_id == customer_id], limit, offset)


class InMemoryMerchantRepository(MerchantRepository):
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._merchants: dict[UUID, Merchant] = {}

    def create(self, merchant: Merchant) -> None:
        with self._lock:
            if merchant.id in self._merchants:
                raise StorageError(f"merchant {merchant.id} already exists")
            if any(m.api_key == merchant.api_key for m in self._merchants.values()):
                raise StorageError("merchant api key already in use")
            self._merchants[merchant.id] = copy.deepcopy(merchant)

    def get_by_id(self, merchant_id: UUID) -> Merchant | None:
        with self._lock:
            merchant = self._merchants.get(merchant_id)
            return copy.deepcopy(merchant) if merchant else None

    def get_by_api_key(self, api_key: str) -> Merchant | None:
        with self._lock:
            for merchant in self._merchants.values():
                if merchant.api_key == api_key:
                    return copy.deepcopy(merchant)
            return None

    def update(self, merchant: Merchant) -> Merchant:
        with self._lock:
            if merchant.id not in self._merchants:
                raise MerchantNotFoundError()
            updated = replace(merchant, updated_at=self._clock())
            self._merchants[merchant.id] = updated
            return copy.deepcopy(updated)

    def deactivate(self, merchant_id: UUID) -> None:
        with self._lock:
            merchant = self._merchants.get(merchant_id)
            if merchant is None:
                raise MerchantNotFoundError()
            self._merchants[merchant_id] = replace(merchant, is_active=False, updated_at=self._clock())


class InMemoryCustomerRepository(CustomerRepository):
    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._lock = Lock()
        self._customers: dict[UUID, Customer] = {}

    def create(self, customer: Customer) -> None:
        with self._lock:
            if customer.id in self._customers:
                raise StorageError(f"customer {customer.id} already exists")
            self._customers[customer.id] = copy.deepcopy(customer)

    def get_by_id(self, customer_id: UUID) -> Customer | None:
        with self._lock:
            customer = self._customers.get(customer_id)
            return copy.deepcopy(customer) if customer else None

    def get_by_email(self, email: str) -> Customer | None:
        with self._lock:
            for customer in self._customers.values():
                if customer.email == email:
                    return copy.deepcopy(customer)
            return None

    def update(self, customer: Customer) -> Customer:
        with self._lock:
            if customer.id not in self._customers:
                raise CustomerNotFoundError()
            updated = replace(customer, updated_at=self._clock())
            self._customers[customer.id] = updated
            return copy.deepcopy(updated)

    def deactivate(self, customer_id: UUID) -> None:
        with self._lock:
            customer = self._customers.get(customer_id)
            if customer is None:
                raise CustomerNotFoundError()
            self._customers[customer_id] = replace(customer, is_active=False, updated_at=self._clock())
