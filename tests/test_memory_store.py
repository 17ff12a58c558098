"""In-memory gateway behaviour the service relies on."""

from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from merchantpay.common.errors import (
    CustomerNotFoundError,
    DuplicateReferenceError,
    MerchantNotFoundError,
    PaymentNotFoundError,
    StatusConflictError,
    StorageError,
)
from merchantpay.services.payments.entities import Merchant, Payment, PaymentMethod, PaymentStatus

BASE_TIME = datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def _payment(merchant_id, customer_id, minutes=0, reference=None) -> Payment:
    ts = BASE_TIME + timedelta(minutes=minutes)
    return Payment(
        id=uuid4(),
        merchant_id=merchant_id,
        customer_id=customer_id,
        amount=500,
        currency="EUR",
        method=PaymentMethod.DIGITAL_WALLET,
        status=PaymentStatus.PENDING,
        created_at=ts,
        updated_at=ts,
        reference=reference,
    )


def test_returned_payments_are_copies(payment_repo):
    payment = _payment(uuid4(), uuid4())
    payment_repo.create(payment)

    fetched = payment_repo.get_by_id(payment.id)
    fetched.status = PaymentStatus.COMPLETED
    payment.amount = 1

    stored = payment_repo.get_by_id(payment.id)
    assert stored.status == PaymentStatus.PENDING
    assert stored.amount == 500


def test_create_rejects_reused_id_and_reference(payment_repo):
    payment = _payment(uuid4(), uuid4(), reference="ref-1")
    payment_repo.create(payment)

    with pytest.raises(StorageError):
        payment_repo.create(payment)
    with pytest.raises(DuplicateReferenceError):
        payment_repo.create(_payment(uuid4(), uuid4(), reference="ref-1"))


def test_update_status_sets_completed_at_only_on_completion(payment_repo):
    completed = _payment(uuid4(), uuid4())
    cancelled = _payment(uuid4(), uuid4())
    payment_repo.create(completed)
    payment_repo.create(cancelled)

    done = payment_repo.update_status(completed.id, PaymentStatus.COMPLETED, expected=PaymentStatus.PENDING)
    gone = payment_repo.update_status(cancelled.id, PaymentStatus.CANCELLED)

    assert done.completed_at == done.updated_at
    assert gone.completed_at is None
    assert gone.updated_at > done.updated_at


def test_update_status_guard(payment_repo):
    payment = _payment(uuid4(), uuid4())
    payment_repo.create(payment)
    payment_repo.update_status(payment.id, PaymentStatus.CANCELLED, expected=PaymentStatus.PENDING)

    with pytest.raises(StatusConflictError) as excinfo:
        payment_repo.update_status(payment.id, PaymentStatus.COMPLETED, expected=PaymentStatus.PENDING)
    assert excinfo.value.current == "cancelled"
    assert excinfo.value.expected == "pending"

    with pytest.raises(PaymentNotFoundError):
        payment_repo.update_status(uuid4(), PaymentStatus.COMPLETED)


def test_lists_filter_order_and_page(payment_repo):
    merchant_id, customer_id = uuid4(), uuid4()
    mine = [_payment(merchant_id, customer_id, minutes=i) for i in range(4)]
    for p in mine:
        payment_repo.create(p)
    payment_repo.create(_payment(uuid4(), uuid4(), minutes=10))

    assert [p.id for p in payment_repo.list_by_merchant(merchant_id, 2, 0)] == [mine[3].id, mine[2].id]
    assert [p.id for p in payment_repo.list_by_merchant(merchant_id, 20, 3)] == [mine[0].id]
    assert payment_repo.list_by_merchant(merchant_id, 20, 4) == []
    assert len(payment_repo.list_by_customer(customer_id, 20, 0)) == 4


def test_merchant_store(merchant_repo, merchant, inactive_merchant):
    assert merchant_repo.get_by_api_key("mk_active_key") == merchant
    assert merchant_repo.get_by_api_key("mk_unknown") is None

    clash = Merchant(
        id=uuid4(),
        name="Copycat",
        email="copy@cat.test",
        api_key="mk_active_key",
        is_active=True,
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    with pytest.raises(StorageError, match="api key already in use"):
        merchant_repo.create(clash)

    merchant.email = "finance@acme.test"
    assert merchant_repo.update(merchant).email == "finance@acme.test"

    merchant_repo.deactivate(merchant.id)
    assert merchant_repo.get_by_id(merchant.id).is_active is False

    with pytest.raises(MerchantNotFoundError):
        merchant_repo.update(clash)


def test_customer_store(customer_repo, customer):
    assert customer_repo.get_by_email("jane@payer.test") == customer
    assert customer_repo.get_by_email("other@payer.test") is None

    customer.phone = "+15550199"
    assert customer_repo.update(customer).phone == "+15550199"

    customer_repo.deactivate(customer.id)
    assert customer_repo.get_by_id(customer.id).is_active is False

    with pytest.raises(CustomerNotFoundError):
        customer_repo.deactivate(uuid4())
