"""Shared pytest fixtures for the test suite."""

import itertools
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from merchantpay.services.payments.entities import Customer, Merchant, PaymentMethod
from merchantpay.services.payments.memory_store import (
    InMemoryCustomerRepository,
    InMemoryMerchantRepository,
    InMemoryPaymentRepository,
)
from merchantpay.services.payments.service import CreatePaymentRequest, PaymentService

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


class TickingClock:
    """Deterministic clock that moves forward one second per call."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)) -> None:
        self.start = start
        self.step = step
        self._ticks = itertools.count()

    def __call__(self) -> datetime:
        return self.start + next(self._ticks) * self.step


@pytest.fixture
def clock() -> TickingClock:
    return TickingClock()


@pytest.fixture
def payment_repo(clock) -> InMemoryPaymentRepository:
    return InMemoryPaymentRepository(clock)


@pytest.fixture
def merchant_repo(clock) -> InMemoryMerchantRepository:
    return InMemoryMerchantRepository(clock)


@pytest.fixture
def customer_repo(clock) -> InMemoryCustomerRepository:
    return InMemoryCustomerRepository(clock)


@pytest.fixture
def merchant(merchant_repo) -> Merchant:
    """An active merchant already stored."""

    merchant = Merchant(
        id=uuid4(),
        name="Acme Store",
        email="billing@acme.test",
        api_key="mk_active_key",
        is_active=True,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    merchant_repo.create(merchant)
    return merchant


@pytest.fixture
def inactive_merchant(merchant_repo) -> Merchant:
    merchant = Merchant(
        id=uuid4(),
        name="Closed Shop",
        email="owner@closed.test",
        api_key="mk_inactive_key",
        is_active=False,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    merchant_repo.create(merchant)
    return merchant


@pytest.fixture
def customer(customer_repo) -> Customer:
    customer = Customer(
        id=uuid4(),
        name="Jane Payer",
        email="jane@payer.test",
        phone="+15550100",
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    customer_repo.create(customer)
    return customer


@pytest.fixture
def service(payment_repo, merchant_repo, customer_repo, clock) -> PaymentService:
    return PaymentService(payment_repo, merchant_repo, customer_repo, clock=clock)


@pytest.fixture
def make_request(merchant, customer):
    """Factory for valid create requests against the default merchant/customer."""

    def _make(**overrides) -> CreatePaymentRequest:
        fields = {
            "merchant_id": merchant.id,
            "customer_id": customer.id,
            "amount": 10000,
            "currency": "USD",
            "method": PaymentMethod.CREDIT_CARD,
            "description": "order #1001",
            "reference": None,
        }
        fields.update(overrides)
        return CreatePaymentRequest(**fields)

    return _make
