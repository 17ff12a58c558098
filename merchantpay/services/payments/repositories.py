"""Storage gateway ports required by the payment lifecycle service.

Contract shared by every implementation:
- getters return None when the record does not exist (a normal outcome)
- infrastructure failures raise StorageError with the underlying cause
- update/deactivate on an unknown id raise the entity's NotFoundError
- returned entities are detached copies; mutating them changes nothing stored
"""

from abc import ABC, abstractmethod
from uuid import UUID

from merchantpay.services.payments.entities import Customer, Merchant, Payment, PaymentStatus


class PaymentRepository(ABC):
    """Port for payment persistence."""

    @abstractmethod
    def create(self, payment: Payment) -> None:
        """Persist a new payment.

        Raises:
            DuplicateReferenceError: another payment already uses the reference.
            StorageError: the write could not be completed.
        """

    @abstractmethod
    def get_by_id(self, payment_id: UUID) -> Payment | None:
        """Return the payment with this id, or None."""

    @abstractmethod
    def get_by_reference(self, reference: str) -> Payment | None:
        """Return the payment carrying this external reference, or None."""

    @abstractmethod
    def update_status(
        self,
        payment_id: UUID,
        status: PaymentStatus,
        *,
        expected: PaymentStatus | None = None,
    ) -> Payment:
        """Set a payment's status and return the updated record.

        With `expected` the write is conditional: it only applies while the
        stored status still equals `expected`, so two concurrent transitions
        out of the same state cannot both succeed. `completed_at` is stamped
        when `status` is completed and cleared otherwise.

        Raises:
            PaymentNotFoundError: no payment has this id.
            StatusConflictError: the stored status differs from `expected`.
            StorageError: the write could not be completed.
        """

    @abstractmethod
    def list_by_merchant(self, merchant_id: UUID, limit: int, offset: int) -> list[Payment]:
        """Return one page of a merchant's payments, newest first."""

    @abstractmethod
    def list_by_customer(self, customer_id: UUID, limit: int, offset: int) -> list[Payment]:
        """Return one page of a customer's payments, newest first."""


class MerchantRepository(ABC):
    """Port for merchant persistence."""

    @abstractmethod
    def create(self, merchant: Merchant) -> None: ...

    @abstractmethod
    def get_by_id(self, merchant_id: UUID) -> Merchant | None: ...

    @abstractmethod
    def get_by_api_key(self, api_key: str) -> Merchant | None: ...

    @abstractmethod
    def update(self, merchant: Merchant) -> Merchant: ...

    @abstractmethod
    def deactivate(self, merchant_id: UUID) -> None:
        """Soft-delete: flip `is_active` off, keep the row."""


class CustomerRepository(ABC):
    """Port for customer persistence."""

    @abstractmethod
    def create(self, customer: Customer) -> None: ...

    @abstractmethod
    def get_by_id(self, customer_id: UUID) -> Customer | None: ...

    @abstractmethod
    def get_by_email(self, email: str) -> Customer | None: ...

    @abstractmethod
    def update(self, customer: Customer) -> Customer: ...

    @abstractmethod
    def deactivate(self, customer_id: UUID) -> None:
        """Soft-delete: flip `is_active` off, keep the row."""
