from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine

from .core.config import Settings, get_settings
from .database import build_engine, create_db_and_tables
from .exceptions import http_exception_handler, validation_exception_handler
from .middleware import SecurityMiddleware, LoggingMiddleware, ErrorHandlingMiddleware
from .routers import auth_router, profile_router
from .application.ports.identity_provider import IdentityProvider
from .application.ports.messaging import MessageDispatcher
from .application.ports.rate_limiter import RateLimiter
from .application.ports.audit_logger import AuditLogger
from .application.services.auth_service import TokenService
from .infrastructure.audit.std_logger import StdAuditLogger
from .infrastructure.identity.firebase_provider import FirebaseIdentityProvider
from .infrastructure.messaging.dispatcher import build_dispatcher
from .infrastructure.rate_limit.memory_rate_limiter import InMemoryRateLimiter
from .infrastructure.rate_limit.redis_rate_limiter import RedisRateLimiter

logger = logging.getLogger(__name__)


def build_rate_limiter(settings: Settings) -> RateLimiter:
    if settings.REDIS_URL:
        logger.info("Redis rate limiter initialized")
        return RedisRateLimiter(url=settings.REDIS_URL)
    logger.info("Using memory-based rate limiting")
    return InMemoryRateLimiter()


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[Engine] = None,
    dispatcher: Optional[MessageDispatcher] = None,
    identity: Optional[IdentityProvider] = None,
    rate_limiter: Optional[RateLimiter] = None,
    audit: Optional[AuditLogger] = None,
    clock: Callable[[], datetime] = datetime.utcnow,
) -> FastAPI:
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info(f"Starting {settings.APP_NAME}...")
        app.state.db_init_ok = True
        app.state.db_init_error = None
        try:
            create_db_and_tables(app.state.engine)
            logger.info("Database initialized successfully")
        except Exception as e:
            # Do not crash the app; report via health endpoint
            app.state.db_init_ok = False
            app.state.db_init_error = str(e)
            logger.exception("Database initialization failed")
        yield
        # Shutdown
        logger.info(f"Shutting down {settings.APP_NAME}...")
        app.state.engine.dispose()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
        docs_url=("/docs" if settings.DOCS_ENABLED else None),
        redoc_url=("/redoc" if settings.DOCS_ENABLED else None),
        openapi_url=("/openapi.json" if settings.DOCS_ENABLED else None),
    )

    # Collaborators live on app.state; request handlers resolve them via routers.deps
    app.state.settings = settings
    app.state.clock = clock
    app.state.engine = engine or build_engine(settings.DATABASE_URL, echo=settings.DEBUG)
    app.state.dispatcher = dispatcher or build_dispatcher(settings)
    app.state.identity = identity or FirebaseIdentityProvider(
        project_id=settings.FIREBASE_PROJECT_ID,
        client_email=settings.FIREBASE_CLIENT_EMAIL,
        private_key=settings.firebase_private_key,
    )
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)
    app.state.audit = audit or StdAuditLogger()
    app.state.token_service = TokenService(
        secret_key=settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
        expire_minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES,
    )
    if settings.SECRET_KEY == "change-me-in-prod":
        logger.warning("JWT_SECRET_KEY is not set; using the development default")

    # Add custom exception handlers
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Add middleware
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.DEBUG)
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(SecurityMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins_list,
        allow_credentials=settings.CORS_ALLOW_CREDENTIALS,
        allow_methods=settings.allowed_methods_list,
        allow_headers=settings.allowed_headers_list,
    )

    app.include_router(auth_router.router)
    app.include_router(profile_router.router)

    @app.get("/health")
    def health_check():
        return {
            "status": "healthy" if getattr(app.state, "db_init_ok", True) else "degraded",
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "timestamp": datetime.utcnow().isoformat(),
            "database": {
                "ok": getattr(app.state, "db_init_ok", True),
                "error": getattr(app.state, "db_init_error", None),
            },
            "messaging_backend": settings.MESSAGING_BACKEND,
        }

    @app.get("/")
    def root():
        return {
            "message": f"{settings.APP_NAME} is running",
            "version": settings.APP_VERSION,
        }

    return app


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )


# Served with: uvicorn hotel_auth.main:build_default_app --factory
def build_default_app() -> FastAPI:
    load_dotenv()
    settings = get_settings()
    _configure_logging(settings)
    return create_app(settings)
