"""Request validation and pagination coercion."""

from uuid import uuid4

import pytest
from pydantic import ValidationError

from merchantpay.services.payments.entities import PaymentMethod
from merchantpay.services.payments.schemas import ApiResponse, PaymentCreateRequest, sanitize_pagination


@pytest.mark.parametrize(
    ("limit", "offset", "expected"),
    [
        (None, None, (20, 0)),
        ("5", "10", (5, 10)),
        ("0", "0", (20, 0)),
        ("-3", "-1", (20, 0)),
        ("abc", "xyz", (20, 0)),
        ("", "", (20, 0)),
        ("50", None, (50, 0)),
        (str(2**64), str(2**64), (20, 0)),
        (str(2**63 - 1), str(2**63 - 1), (2**63 - 1, 2**63 - 1)),
    ],
)
def test_sanitize_pagination(limit, offset, expected):
    assert sanitize_pagination(limit, offset) == expected


def test_sanitize_pagination_custom_default():
    assert sanitize_pagination("bogus", "2", default_limit=7) == (7, 2)


def _body(**overrides):
    body = {
        "merchant_id": str(uuid4()),
        "customer_id": str(uuid4()),
        "amount": 10000,
        "currency": "USD",
        "method": "credit_card",
    }
    body.update(overrides)
    return body


def test_valid_body_becomes_command():
    req = PaymentCreateRequest.model_validate(_body(reference="ord-7"))
    cmd = req.to_command()

    assert cmd.amount == 10000
    assert cmd.method == PaymentMethod.CREDIT_CARD
    assert cmd.reference == "ord-7"
    assert cmd.description == ""


@pytest.mark.parametrize(
    "overrides",
    [
        {"amount": 0},
        {"amount": -5},
        {"amount": "100"},
        {"amount": 10.5},
        {"amount": 2**63},
        {"currency": "US"},
        {"currency": "USDT"},
        {"currency": "1$x"},
        {"currency": "US1"},
        {"method": "cash"},
        {"merchant_id": "not-a-uuid"},
        {"description": "x" * 1001},
    ],
)
def test_malformed_bodies_are_rejected(overrides):
    with pytest.raises(ValidationError):
        PaymentCreateRequest.model_validate(_body(**overrides))


def test_missing_fields_are_rejected():
    body = _body()
    del body["customer_id"]

    with pytest.raises(ValidationError):
        PaymentCreateRequest.model_validate(body)


def test_envelope_omits_empty_fields():
    assert ApiResponse(success=False, error="boom").body() == {"success": False, "error": "boom"}
    assert ApiResponse(success=True, data=[], message="ok").body() == {"success": True, "data": [], "message": "ok"}


def test_largest_bigint_amount_is_accepted():
    req = PaymentCreateRequest.model_validate(_body(amount=2**63 - 1, currency="eur"))

    assert req.amount == 2**63 - 1
