"""Per-merchant API key authentication for the payment endpoints."""

from fastapi import Header, HTTPException, Request

from merchantpay.common.logging import logger, merchant_id_ctx
from merchantpay.services.payments.entities import Merchant

BEARER_PREFIX = "Bearer "


def extract_api_key(x_api_key: str | None, authorization: str | None) -> str | None:
    """Prefer `X-API-Key`; fall back to an `Authorization: Bearer` token."""

    if x_api_key:
        return x_api_key
    if authorization and authorization.startswith(BEARER_PREFIX):
        return authorization[len(BEARER_PREFIX) :].strip() or None
    return None


def authenticate_merchant(
    request: Request,
    x_api_key: str | None = Header(default=None),
    authorization: str | None = Header(default=None),
) -> Merchant:
    """Resolve the calling merchant or reject the request before the service runs."""

    api_key = extract_api_key(x_api_key, authorization)
    if not api_key:
        raise HTTPException(status_code=401, detail="API key is required")

    merchant = request.app.state.merchants.get_by_api_key(api_key)
    if merchant is None:
        logger.warning("rejected unknown API key")
        raise HTTPException(status_code=401, detail="Invalid API key")
    if not merchant.is_active:
        logger.warning("rejected inactive merchant merchant_id=%s", merchant.id)
        raise HTTPException(status_code=403, detail="Merchant account is inactive")

    merchant_id_ctx.set(str(merchant.id))
    return merchant
