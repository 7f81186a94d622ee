import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# Routers
from .routers.valuation import router as valuation_router

# Core modules
from .core.config import settings
from .core.errors import PersistenceError
from .core.logging import configure_logging, CorrelationIdMiddleware
from .core.metrics import PromMiddleware, metrics_endpoint

logger = logging.getLogger(__name__)

def create_app() -> FastAPI:
    """
    App factory so tests and ASGI servers can instantiate cleanly.
    """
    configure_logging()  # Set up JSON logs + correlation-id filter

    app = FastAPI(
        title="Price per m² Valuation API",
        version="1.0.0",
        description="Price per m² by postal code with a freshness cache, LLM fallback and lead persistence.",
    )

    allow_origins = [o.strip() for o in settings.ALLOW_ORIGINS.split(",")] if settings.ALLOW_ORIGINS else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-Id"],
    )

    # Observability middlewares
    app.add_middleware(CorrelationIdMiddleware)  # Adds/propagates X-Request-Id
    if settings.PROMETHEUS_ENABLED:
        app.add_middleware(PromMiddleware)       # Records req/latency metrics

    # Error bodies are always {"error": ...}
    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        logger.error("valuation not persisted", exc_info=exc)
        return JSONResponse({"error": "internal_error"}, status_code=500)

    # Runs outside CorrelationIdMiddleware, so the id comes from request state
    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        logger.error(
            "unhandled error on %s", request.url.path, exc_info=exc,
            extra={"request_id": getattr(request.state, "request_id", None)},
        )
        return JSONResponse({"error": "internal_error"}, status_code=500)

    # Meta routes
    @app.get("/health", tags=["meta"])
    def health():
        return {"ok": True}

    if settings.PROMETHEUS_ENABLED:
        # Standard Prometheus scrape endpoint
        app.add_route("/metrics", metrics_endpoint, methods=["GET"])

    # Business routes
    app.include_router(valuation_router, tags=["valuation"])

    return app

app = create_app()
