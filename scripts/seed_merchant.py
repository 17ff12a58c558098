"""Create one merchant and one customer for local testing.

Prints the merchant API key and both ids so the API can be exercised with
curl or `scripts/load_test.py`.
"""

import argparse
import json
import secrets
from uuid import uuid4

from merchantpay.common.config import load_settings
from merchantpay.common.db import build_engine, build_session_factory
from merchantpay.services.payments.entities import Customer, Merchant, utcnow
from merchantpay.services.payments.sql_store import SqlCustomerRepository, SqlMerchantRepository


def main() -> None:
    """CLI entrypoint for dev data bootstrap."""

    parser = argparse.ArgumentParser(description="Seed a merchant and a customer.")
    parser.add_argument("--merchant-name", default="Demo Merchant")
    parser.add_argument("--merchant-email", default="merchant@example.com")
    parser.add_argument("--customer-name", default="Demo Customer")
    parser.add_argument("--customer-email", default="customer@example.com")
    parser.add_argument("--api-key", default=None, help="Defaults to a random key")
    args = parser.parse_args()

    engine = build_engine(load_settings())
    session_factory = build_session_factory(engine)
    now = utcnow()
    merchant = Merchant(
        id=uuid4(),
        name=args.merchant_name,
        email=args.merchant_email,
        api_key=args.api_key or f"mk_{secrets.token_hex(16)}",
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    customers = SqlCustomerRepository(session_factory)
    customer = customers.get_by_email(args.customer_email)
    if customer is None:
        customer = Customer(
            id=uuid4(),
            name=args.customer_name,
            email=args.customer_email,
            phone="",
            created_at=now,
            updated_at=now,
        )
        customers.create(customer)
    SqlMerchantRepository(session_factory).create(merchant)
    engine.dispose()

    print(
        json.dumps(
            {
                "merchant_id": str(merchant.id),
                "api_key": merchant.api_key,
                "customer_id": str(customer.id),
            },
            indent=2,
        )
    )


if __name__ == "__main__":
    main()
