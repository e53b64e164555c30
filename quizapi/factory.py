"""
Application factory.

All collaborators (store, cache client, token service) are constructed once
here and handed to the services explicitly; tests pass in-memory substitutes.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from quizapi.api.auth import router as auth_router
from quizapi.api.permissions import router as permissions_router
from quizapi.api.quizzes import router as quizzes_router
from quizapi.core.auth import TokenService
from quizapi.core.cache import CacheClient, QuizCache, RedisCacheClient
from quizapi.core.config import Settings, get_settings
from quizapi.core.database import init_db, make_engine, make_session_factory
from quizapi.core.errors import ErrorKind
from quizapi.core.security import PasswordHasher
from quizapi.services.auth_service import AuthService
from quizapi.services.permission_service import PermissionService
from quizapi.services.quiz_service import QuizService
from quizapi.services.store import SqlAlchemyStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, store: Optional[SqlAlchemyStore] = None,
               cache_client: Optional[CacheClient] = None) -> FastAPI:
    """Build the API. Missing collaborators are created from ``settings``."""
    settings = settings or get_settings()
    engine = None
    if store is None:
        engine = make_engine(settings.DATABASE_URL)
        store = SqlAlchemyStore(make_session_factory(engine))
    if cache_client is None:
        cache_client = RedisCacheClient.from_url(settings.REDIS_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting {settings.APP_NAME}...")
        if engine is not None and settings.CREATE_TABLES:
            init_db(engine)
            logger.info("Database initialized")
        yield
        if engine is not None:
            engine.dispose()
        logger.info("Shutdown complete")

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url=settings.DOCS_URL if not settings.is_production() else None,
        lifespan=lifespan,
    )
    app.add_middleware(CORSMiddleware, allow_origins=settings.cors_origins, allow_credentials=True,
                       allow_methods=["*"], allow_headers=["*"])

    tokens = TokenService(settings.JWT_SECRET.get_secret_value(), ttl=settings.token_ttl,
                          algorithm=settings.JWT_ALGORITHM)
    quiz_cache = QuizCache(cache_client, store, list_ttl=settings.QUIZ_LIST_CACHE_TTL,
                           item_ttl=settings.QUIZ_CACHE_TTL)
    app.state.settings = settings
    app.state.tokens = tokens
    app.state.auth_service = AuthService(store, tokens, PasswordHasher(settings.BCRYPT_ROUNDS))
    app.state.permission_service = PermissionService(store)
    app.state.quiz_service = QuizService(store, quiz_cache,
                                         invalidate_on_title_update=settings.INVALIDATE_ON_TITLE_UPDATE)

    prefix = settings.API_V1_PREFIX
    app.include_router(auth_router, prefix=f"{prefix}/auth", tags=["auth"])
    app.include_router(permissions_router, prefix=prefix, tags=["permissions"])
    app.include_router(quizzes_router, prefix=f"{prefix}/quizzes", tags=["quizzes"])

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        kind = getattr(exc, "kind", None)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": {
                    "message": exc.detail,
                    "type": kind.value if kind else "http_error",
                    "status_code": exc.status_code,
                }
            },
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content={"error": {"message": "Validation error", "type": "validation_error", "status_code": 422,
                               "details": jsonable_encoder(exc.errors())}},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        message = "An internal error occurred" if settings.is_production() else str(exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": {"message": message, "type": ErrorKind.INTERNAL_FAILURE.value,
                               "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR}},
        )

    @app.get("/health", tags=["health"])
    def health():
        return {"status": "ok"}

    return app
