# shopstar/main.py
from contextlib import asynccontextmanager
import logging
import time

from fastapi.middleware.cors import CORSMiddleware
from fastapi import FastAPI, Request

from shopstar.core.config import Settings, get_settings
from shopstar.core.errors import register_exception_handlers
from shopstar.core.payment_gateway import PaymentGateway, build_payment_gateway
from shopstar.database import Database
from shopstar.services.notification_service import NotificationService

# Import models so SQLModel metadata is populated before create_all()
from shopstar.models import user as _user_models  # noqa: F401
from shopstar.models import category as _category_models  # noqa: F401
from shopstar.models import product as _product_models  # noqa: F401
from shopstar.models import cart as _cart_models  # noqa: F401
from shopstar.models import order as _order_models  # noqa: F401


# Routers
from shopstar.routers.auth import router as auth_router
from shopstar.routers.users import router as users_router
from shopstar.routers.categories import router as categories_router
from shopstar.routers.products import router as products_router
from shopstar.routers.cart import router as cart_router
from shopstar.routers.orders import router as orders_router
from shopstar.routers.webhooks import router as webhooks_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("uvicorn")

# Distinguishes "not passed" from an explicit None (payments disabled).
_UNSET = object()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
      - Verify DB connectivity and create tables.

    Shutdown:
      - Dispose of the engine's connection pool.
    """
    db: Database = app.state.db
    logger.info("🔄 Startup: Connecting to the database...")
    try:
        db.create_db_and_tables()
        logger.info("✅ Startup: DB connection OK, tables verified.")
    except Exception as e:
        logger.error(f"❌ Startup: DB connection FAILED: {e}")
        raise
    yield
    db.dispose()


def create_app(
    settings: Settings | None = None,
    *,
    payment_gateway: PaymentGateway | None | object = _UNSET,
    notifier: NotificationService | None = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Everything the request handlers need (settings, database handle,
    payment gateway, notifier) lives on `app.state`, so tests can build
    isolated apps with their own database and fakes.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version="0.1.0",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.db = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    app.state.payment_gateway = (
        build_payment_gateway(settings) if payment_gateway is _UNSET else payment_gateway
    )
    app.state.notifier = notifier or NotificationService(settings)

    # --- CORS configuration ---
    origins = list(dict.fromkeys([settings.FRONTEND_URL, *settings.CORS_ORIGINS]))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.1f}ms)"
        )
        return response

    register_exception_handlers(app)

    app.include_router(auth_router, prefix=settings.API_PREFIX)
    app.include_router(users_router, prefix=settings.API_PREFIX)
    app.include_router(categories_router, prefix=settings.API_PREFIX)
    app.include_router(products_router, prefix=settings.API_PREFIX)
    app.include_router(cart_router, prefix=settings.API_PREFIX)
    app.include_router(orders_router, prefix=settings.API_PREFIX)
    app.include_router(webhooks_router, prefix=settings.API_PREFIX)

    @app.get(f"{settings.API_PREFIX}/health")
    def health():
        """Health check endpoint."""
        return {
            "status": "ok",
            "environment": settings.ENVIRONMENT,
            "payments": app.state.payment_gateway is not None,
        }

    @app.get("/")
    def root():
        return {"status": "ok", "service": "shopstar-backend"}

    return app


app = create_app()
