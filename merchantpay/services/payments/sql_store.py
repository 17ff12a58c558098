"""SQLAlchemy-backed storage gateways.

Each call opens its own short session from the injected session factory and
commits before returning. Driver and pool failures (including statement and
checkout timeouts configured on the engine) surface as StorageError.
"""

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Callable, Iterator
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from merchantpay.common.errors import (
    CustomerNotFoundError,
    DuplicateReferenceError,
    MerchantNotFoundError,
    PaymentNotFoundError,
    StatusConflictError,
    StorageError,
)
from merchantpay.services.payments.entities import (
    Customer,
    Merchant,
    Payment,
    PaymentMethod,
    PaymentStatus,
    utcnow,
)
from merchantpay.services.payments.models import CustomerRow, MerchantRow, PaymentRow
from merchantpay.services.payments.repositories import (
    CustomerRepository,
    MerchantRepository,
    PaymentRepository,
)


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Turn SQLAlchemy and driver failures into StorageError naming the operation."""

    try:
        yield
    except (SQLAlchemyError, OverflowError) as exc:
        raise StorageError(f"failed to {operation}", cause=exc) from exc


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _payment_from_row(row: PaymentRow) -> Payment:
    return Payment(
        id=row.id,
        merchant_id=row.merchant_id,
        customer_id=row.customer_id,
        amount=row.amount,
        currency=row.currency,
        method=PaymentMethod(row.method),
        status=PaymentStatus(row.status),
        description=row.description or "",
        reference=row.reference,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
        completed_at=_aware(row.completed_at),
    )


def _merchant_from_row(row: MerchantRow) -> Merchant:
    return Merchant(
        id=row.id,
        name=row.name,
        email=row.email,
        api_key=row.api_key,
        is_active=row.is_active,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _customer_from_row(row: CustomerRow) -> Customer:
    return Customer(
        id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone or "",
        is_active=row.is_active,
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


class SqlPaymentRepository(PaymentRepository):
    """Payments table gateway."""

    def __init__(self, session_factory, clock: Callable[[], datetime] = utcnow) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def create(self, payment: Payment) -> None:
        try:
            with translate_errors("create payment"), self.session_factory() as db:
                db.add(
                    PaymentRow(
                        id=payment.id,
                        merchant_id=payment.merchant_id,
                        customer_id=payment.customer_id,
                        amount=payment.amount,
                        currency=payment.currency,
                        method=payment.method.value,
                        status=payment.status.value,
                        description=payment.description,
                        reference=payment.reference,
                        created_at=payment.created_at,
                        updated_at=payment.updated_at,
                        completed_at=payment.completed_at,
                    )
                )
                db.commit()
        except StorageError as exc:
            if isinstance(exc.cause, IntegrityError) and payment.reference:
                existing = self.get_by_reference(payment.reference)
                if existing is not None and existing.id != payment.id:
                    raise DuplicateReferenceError(payment.reference, cause=exc.cause) from exc
            raise

    def get_by_id(self, payment_id: UUID) -> Payment | None:
        with translate_errors("get payment by id"), self.session_factory() as db:
            row = db.get(PaymentRow, payment_id)
            return _payment_from_row(row) if row else None

    def get_by_reference(self, reference: str) -> Payment | None:
        with translate_errors("get payment by reference"), self.session_factory() as db:
            row = db.execute(select(PaymentRow).where(PaymentRow.reference == reference)).scalar_one_or_none()
            return _payment_from_row(row) if row else None

    def update_status(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        *,
        expected: PaymentStatus | None = None,
    ) -> Payment:
        """Apply one status write, guarded by `expected` when given.

        The guard lives in the WHERE clause so the database resolves
        concurrent transitions; the loser sees rowcount 0.
        """

        now = self.clock()
        with translate_errors("update payment status"), self.session_factory() as db:
            stmt = update(PaymentRow).where(PaymentRow.id == payment_id)
            if expected is not None:
                stmt = stmt.where(PaymentRow.status == expected.value)
            result = db.execute(
                stmt.values(
                    status=status.value,
                    updated_at=now,
                    completed_at=now if status == PaymentStatus.COMPLETED else None,
                ).execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                row = db.get(PaymentRow, payment_id)
                current = row.status if row is not None else None
                db.rollback()
                if current is None:
                    raise PaymentNotFoundError()
                raise StatusConflictError(current, expected.value if expected else status.value)
            row = db.get(PaymentRow, payment_id)
            payment = _payment_from_row(row)
            db.commit()
            return payment

    def list_by_merchant(self, merchant_id: UUID, limit: int, offset: int) -> list[Payment]:
        with translate_errors("list payments by merchant"), self.session_factory() as db:
            rows = db.execute(
                select(PaymentRow)
                .where(PaymentRow.merchant_id == merchant_id)
                .order_by(PaymentRow.created_at.desc(), PaymentRow.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return [_payment_from_row(row) for row in rows]

    def list_by_customer(self, customer_id: UUID, limit: int, offset: int) -> list[Payment]:
        with translate_errors("list payments by customer"), self.session_factory() as db:
            rows = db.execute(
                select(PaymentRow)
                .where(PaymentRow.customer_id == customer_id)
                .order_by(PaymentRow.created_at.desc(), PaymentRow.id.desc())
                .limit(limit)
                .offset(offset)
            ).scalars().all()
            return [_payment_from_row(row) for row in rows]


class SqlMerchantRepository(MerchantRepository):
    """Merchants table gateway."""

    def __init__(self, session_factory, clock: Callable[[], datetime] = utcnow) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def create(self, merchant: Merchant) -> None:
        with translate_errors("create merchant"), self.session_factory() as db:
            db.add(
                MerchantRow(
                    id=merchant.id,
                    name=merchant.name,
                    email=merchant.email,
                    api_key=merchant.api_key,
                    is_active=merchant.is_active,
                    created_at=merchant.created_at,
                    updated_at=merchant.updated_at,
                )
            )
            db.commit()

    def get_by_id(self, merchant_id: UUID) -> Merchant | None:
        with translate_errors("get merchant by id"), self.session_factory() as db:
            row = db.get(MerchantRow, merchant_id)
            return _merchant_from_row(row) if row else None

    def get_by_api_key(self, api_key: str) -> Merchant | None:
        with translate_errors("get merchant by api key"), self.session_factory() as db:
            row = db.execute(select(MerchantRow).where(MerchantRow.api_key == api_key)).scalar_one_or_none()
            return _merchant_from_row(row) if row else None

    def update(self, merchant: Merchant) -> Merchant:
        with translate_errors("update merchant"), self.session_factory() as db:
            row = db.get(MerchantRow, merchant.id)
            if row is None:
                raise MerchantNotFoundError()
            row.name = merchant.name
            row.email = merchant.email
            row.api_key = merchant.api_key
            row.is_active = merchant.is_active
            row.updated_at = self.clock()
            db.flush()
            merchant = _merchant_from_row(row)
            db.commit()
            return merchant

    def deactivate(self, merchant_id: UUID) -> None:
        with translate_errors("deactivate merchant"), self.session_factory() as db:
            result = db.execute(
                update(MerchantRow)
                .where(MerchantRow.id == merchant_id)
                .values(is_active=False, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise MerchantNotFoundError()
            db.commit()


class SqlCustomerRepository(CustomerRepository):
    """Customers table gateway."""

    def __init__(self, session_factory, clock: Callable[[], datetime] = utcnow) -> None:
        self.session_factory = session_factory
        self.clock = clock

    def create(self, customer: Customer) -> None:
        with translate_errors("create customer"), self.session_factory() as db:
            db.add(
                CustomerRow(
                    id=customer.id,
                    name=customer.name,
                    email=customer.email,
                    phone=customer.phone,
                    is_active=customer.is_active,
                    created_at=customer.created_at,
                    updated_at=customer.updated_at,
                )
            )
            db.commit()

    def get_by_id(self, customer_id: UUID) -> Customer | None:
        with translate_errors("get customer by id"), self.session_factory() as db:
            row = db.get(CustomerRow, customer_id)
            return _customer_from_row(row) if row else None

    def get_by_email(self, email: str) -> Customer | None:
        with translate_errors("get customer by email"), self.session_factory() as db:
            row = db.execute(
                select(CustomerRow).where(CustomerRow.email == email).order_by(CustomerRow.created_at)
            ).scalars().first()
            return _customer_from_row(row) if row else None

    def update(self, customer: Customer) -> Customer:
        with translate_errors("update customer"), self.session_factory() as db:
            row = db.get(CustomerRow, customer.id)
            if row is None:
                raise CustomerNotFoundError()
            row.name = customer.name
            row.email = customer.email
            row.phone = customer.phone
            row.is_active = customer.is_active
            row.updated_at = self.clock()
            db.flush()
            customer = _customer_from_row(row)
            db.commit()
            return customer

    def deactivate(self, customer_id: UUID) -> None:
        with translate_errors("deactivate customer"), self.session_factory() as db:
            result = db.execute(
                update(CustomerRow)
                .where(CustomerRow.id == customer_id)
                .values(is_active=False, updated_at=self.clock())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise CustomerNotFoundError()
            db.commit()
