import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from app.core.config import Settings, settings
from app.core.errors import PaymentAPIError
from app.api.api import api_router
from app.providers.registry import ProviderRegistry, build_registry
from app.services.idempotency import IdempotencyLedger
from app.services.payment_service import PaymentService
from app.services.subscription_service import SubscriptionService
from app.storage import SubscriptionStore, SupabaseSubscriptionStore, build_subscription_store

# Logging Configuration
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    app_settings: Settings = app.state.settings
    logger.info(f"Payment provider: {app_settings.PAYMENT_PROVIDER or 'NOT SET'}")
    logger.info(f"Subscription store: {app_settings.SUBSCRIPTION_STORE}")

    # Initialize Supabase Client
    store = app.state.subscription_store
    if isinstance(store, SupabaseSubscriptionStore):
        try:
            await store.get_client()
            logger.info("Supabase client initialized.")
        except Exception as e:
            logger.error(f"Failed to initialize Supabase client: {e}")
    yield


def _error_response(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def _describe_validation_error(error: dict) -> str:
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body") or "body"
    if error.get("type") == "missing":
        return f"{field} is required"
    return f"{field}: {error.get('msg')}"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaymentAPIError)
    async def payment_api_error_handler(request: Request, exc: PaymentAPIError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        body_level = [e for e in errors if tuple(e.get("loc", ())) == ("body",)]
        if any(e.get("type") == "json_invalid" for e in errors) or body_level:
            return _error_response(400, "INVALID_JSON", "Request body must be a valid JSON object")
        return _error_response(
            400,
            "INVALID_REQUEST",
            "Validation failed",
            [_describe_validation_error(e) for e in errors],
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(404, "NOT_FOUND", "Endpoint not found")
        if exc.status_code == 405:
            return _error_response(405, "METHOD_NOT_ALLOWED", "Method not allowed")
        return _error_response(exc.status_code, "HTTP_ERROR", "Request could not be processed")

    # Global Exception Handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global exception: {type(exc).__name__}: {exc}", exc_info=True)
        return _error_response(500, "INTERNAL_ERROR", "Internal Server Error")


def create_app(
    app_settings: Optional[Settings] = None,
    registry: Optional[ProviderRegistry] = None,
    store: Optional[SubscriptionStore] = None,
) -> FastAPI:
    app_settings = app_settings or settings
    if registry is None:
        registry = build_registry(app_settings)
    if store is None:
        store = build_subscription_store(app_settings)

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        openapi_url=f"{app_settings.API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    subscription_service = SubscriptionService(store)
    ledger = IdempotencyLedger(subscription_service)
    app.state.settings = app_settings
    app.state.registry = registry
    app.state.subscription_store = store
    app.state.subscription_service = subscription_service
    app.state.ledger = ledger
    app.state.payment_service = PaymentService(registry, ledger, app_settings)

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=app_settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
        max_age=86400,
    )

    if app_settings.ENFORCE_HTTPS or app_settings.is_production:
        @app.middleware("http")
        async def enforce_https(request: Request, call_next):
            forwarded_proto = request.headers.get("x-forwarded-proto", "")
            if request.url.scheme != "https" and forwarded_proto.lower() != "https":
                return _error_response(403, "HTTPS_REQUIRED", "HTTPS is required for all requests in production")
            return await call_next(request)

    register_exception_handlers(app)

    # Include Router
    app.include_router(api_router, prefix=app_settings.API_PREFIX)

    @app.get("/")
    async def root():
        return {"message": f"{app_settings.PROJECT_NAME} is running", "docs": "/docs"}

    return app


app = create_app()
