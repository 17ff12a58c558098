"""HTTP surface for merchant payment records.

Run with `uvicorn merchantpay.services.payments.main:create_app --factory`.
"""

from contextlib import asynccontextmanager
from time import perf_counter
from uuid import UUID, uuid4

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from merchantpay.common.config import Settings, load_settings
from merchantpay.common.db import build_engine, build_session_factory
from merchantpay.common.errors import AppError, ErrorKind, PaymentNotFoundError
from merchantpay.common.logging import configure_logging, logger, request_id_ctx
from merchantpay.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from merchantpay.common.startup import log_startup_config
from merchantpay.common.tracing import enable_tracing
from merchantpay.services.payments.auth import authenticate_merchant
from merchantpay.services.payments.entities import Merchant, Payment
from merchantpay.services.payments.schemas import (
    ApiResponse,
    PaymentCreateRequest,
    PaymentResponse,
    sanitize_pagination,
)
from merchantpay.services.payments.service import PaymentService
from merchantpay.services.payments.sql_store import (
    SqlCustomerRepository,
    SqlMerchantRepository,
    SqlPaymentRepository,
)

REQUEST_ID_HEADER = "X-Request-ID"

STATUS_BY_KIND = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PRECONDITION: 409,
    ErrorKind.CONFLICT: 409,
    ErrorKind.VALIDATION: 400,
    ErrorKind.STORAGE: 500,
}


class BoundaryError(Exception):
    """Boundary-level rejection carrying an explicit status code."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message


router = APIRouter(tags=["payments"], dependencies=[Depends(authenticate_merchant)])


def generate_request_id() -> str:
    return "req_" + uuid4().hex[:16]


def get_service(request: Request) -> PaymentService:
    return request.app.state.service


def parse_uuid(value: str, what: str) -> UUID:
    """Parse a path id; a bad id is a boundary error, never a service error."""

    try:
        return UUID(value)
    except ValueError:
        raise BoundaryError(400, f"Invalid {what} ID format") from None


def _envelope(request: Request, status_code: int, error: str) -> JSONResponse:
    request_id = getattr(request.state, "request_id", None) or request_id_ctx.get() or None
    body = ApiResponse(success=False, error=error, request_id=request_id).body()
    return JSONResponse(status_code=status_code, content=body)


def _payment_body(payment: Payment) -> dict:
    return PaymentResponse.model_validate(payment).model_dump(mode="json")


def _ensure_owner(payment: Payment, merchant: Merchant) -> None:
    # Another merchant's payment is indistinguishable from a missing one.
    if payment.merchant_id != merchant.id:
        raise PaymentNotFoundError()


@router.post("/payments", status_code=201)
def create_payment(
    req: PaymentCreateRequest,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    """Create a payment in `pending` for the authenticated merchant."""

    if req.merchant_id != merchant.id:
        raise BoundaryError(403, "API key does not belong to this merchant")
    payment = service.create_payment(req.to_command())
    return ApiResponse(success=True, data=_payment_body(payment), message="Payment created successfully").body()


@router.get("/payments/reference/{reference}")
def get_payment_by_reference(
    reference: str,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    """Look a payment up by the caller-supplied external reference."""

    payment = service.get_payment_by_reference(reference)
    _ensure_owner(payment, merchant)
    return ApiResponse(success=True, data=_payment_body(payment)).body()


@router.get("/payments/{payment_id}")
def get_payment(
    payment_id: str,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    payment = service.get_payment(parse_uuid(payment_id, "payment"))
    _ensure_owner(payment, merchant)
    return ApiResponse(success=True, data=_payment_body(payment)).body()


@router.post("/payments/{payment_id}/process")
def process_payment(
    payment_id: str,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    """Complete a pending payment."""

    pid = parse_uuid(payment_id, "payment")
    _ensure_owner(service.get_payment(pid), merchant)
    payment = service.process_payment(pid)
    return ApiResponse(success=True, data=_payment_body(payment), message="Payment processed successfully").body()


@router.post("/payments/{payment_id}/cancel")
def cancel_payment(
    payment_id: str,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    """Cancel a pending payment."""

    pid = parse_uuid(payment_id, "payment")
    _ensure_owner(service.get_payment(pid), merchant)
    payment = service.cancel_payment(pid)
    return ApiResponse(success=True, data=_payment_body(payment), message="Payment cancelled successfully").body()


@router.get("/merchants/{merchant_id}/payments")
def get_merchant_payments(
    request: Request,
    merchant_id: str,
    limit: str | None = None,
    offset: str | None = None,
    merchant: Merchant = Depends(authenticate_merchant),
    service: PaymentService = Depends(get_service),
):
    """Page through a merchant's payments, newest first."""

    mid = parse_uuid(merchant_id, "merchant")
    if mid != merchant.id:
        raise BoundaryError(403, "API key does not belong to this merchant")
    page_limit, page_offset = sanitize_pagination(limit, offset, request.app.state.settings.default_page_limit)
    payments = service.get_merchant_payments(mid, page_limit, page_offset)
    return ApiResponse(success=True, data=[_payment_body(p) for p in payments]).body()


def build_service(settings: Settings):
    """Wire SQL gateways into a service; returns the service and its engine."""

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    service = PaymentService(
        SqlPaymentRepository(session_factory),
        SqlMerchantRepository(session_factory),
        SqlCustomerRepository(session_factory),
        service_name=settings.service_name,
    )
    return service, engine


def create_app(settings: Settings | None = None, service: PaymentService | None = None) -> FastAPI:
    """Build the FastAPI app; pass `service` to run against other gateways."""

    settings = settings or load_settings()
    configure_logging(settings)
    log_startup_config(settings)

    engine = None
    if service is None:
        service, engine = build_service(settings)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        logger.info("payments service starting")
        yield
        if engine is not None:
            engine.dispose()
        if tracer_provider is not None:
            tracer_provider.shutdown()
        logger.info("payments service stopped")

    app = FastAPI(title="MerchantPay Payments", lifespan=lifespan)
    app.state.settings = settings
    app.state.service = service
    app.state.merchants = service.merchants

    tracer_provider = enable_tracing(app, settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Assign a request id and record request count and latency."""

        request_id = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()
        request.state.request_id = request_id
        request_id_ctx.set(request_id)
        start = perf_counter()
        route = request.url.path
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        status_code = STATUS_BY_KIND.get(exc.kind, 500)
        if exc.kind == ErrorKind.STORAGE:
            logger.error("storage failure: %s", exc)
            return _envelope(request, status_code, "internal server error")
        return _envelope(request, status_code, exc.message)

    @app.exception_handler(BoundaryError)
    async def boundary_error_handler(request: Request, exc: BoundaryError):
        return _envelope(request, exc.status_code, exc.message)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return _envelope(request, exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        problems = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'][1:]) or 'body'}: {err['msg']}" for err in exc.errors()
        )
        return _envelope(request, 400, f"Invalid request body: {problems}")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("unhandled error: %s", exc, exc_info=exc)
        return _envelope(request, 500, "internal server error")

    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/health")
    def health():
        """Liveness probe; never touches the service."""

        return {"status": "ok", "service": settings.service_name}

    return app
