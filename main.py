import logging
from contextlib import asynccontextmanager
from datetime import datetime, UTC
from typing import List, Dict, Any, Optional
import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from tree_service.api.routes import router, limiter
from tree_service.config import Config
from tree_service.middleware.security import SecurityHeadersMiddleware
from tree_service.repositories import NodeRepository, SQLNodeRepository
from tree_service.services import TreeService
from tree_service.utils import CacheProvider, create_cache_provider

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=Config.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )


def _validation_message(exc: RequestValidationError) -> str:
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path"))
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages) or "invalid request"


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _validation_message(exc)
    logger.info(f"[API] Rejected request to {request.url.path}: {message}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": message}
    )


def create_app(
    repository: Optional[NodeRepository] = None,
    cache: Optional[CacheProvider] = None
) -> FastAPI:
    """Build the API with an injected node store and page cache.

    Collaborators created here are closed on shutdown; injected ones are left
    to their owner.
    """
    configure_logging()
    Config.validate()

    owns_repository = repository is None
    if repository is None:
        repository = SQLNodeRepository(Config.DATABASE_URL)
    repository.initialize()

    if cache is None:
        cache = create_cache_provider(
            redis_url=Config.REDIS_URL,
            ttl_seconds=Config.CACHE_TTL_SECONDS,
            max_size=Config.CACHE_MAX_SIZE
        )
    else:
        cache.initialize()

    tree_service = TreeService(repository, cache, max_page_size=Config.MAX_PAGE_SIZE)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_repository:
            repository.close()
            logger.info("[App] Node store closed")

    app = FastAPI(
        title="Tree Service API",
        version="1.0.0",
        description="Paginated forest of labeled nodes with a page-keyed cache",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.tree_service = tree_service

    allowed_origins: List[str] = Config.ALLOWED_ORIGINS

    app.add_middleware(SecurityHeadersMiddleware, production=Config.is_production())

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        max_age=3600,
    )

    app.state.limiter = limiter
    app.add_middleware(SlowAPIMiddleware)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    @app.get("/health")
    async def health_check():
        """Shallow health check - service is alive."""
        return {
            "status": "healthy",
            "service": "Tree Service API",
            "timestamp": datetime.now(UTC).isoformat()
        }

    @app.get("/health/deep")
    def deep_health_check() -> Dict[str, Any]:
        """Deep health check - validates the node store and reports the cache backend."""
        health_status: Dict[str, Any] = {
            "status": "healthy",
            "service": "Tree Service API",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {}
        }

        store_ok = tree_service.repository.ping()
        health_status["checks"]["node_store"] = {
            "status": "healthy" if store_ok else "unhealthy",
            "message": "Reachable" if store_ok else "Connection failed"
        }

        cache_stats = tree_service.cache_stats()
        health_status["checks"]["cache"] = {
            "status": "healthy",
            "backend": cache_stats.get("backend", "unknown")
        }

        health_status["status"] = "healthy" if store_ok else "degraded"
        return health_status

    app.include_router(router, prefix="/api", tags=["Tree"])

    logger.info(f"[App] Started ({Config.APP_ENV}), cache backend: {cache.get_stats().get('backend')}")
    return app

app = create_app()

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level=Config.LOG_LEVEL.lower()
    )
