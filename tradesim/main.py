"""
FastAPI main application.

Entry point for the simulated trading bot backend.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from tradesim import __version__
from tradesim.config.settings import Settings, get_settings
from tradesim.core.logger import get_logger, setup_logging
from tradesim.core.responses import error_json_response, exception_json_response, success_response
from tradesim.modules.trading.router import router as trading_router
from tradesim.services.position_sweeper import PositionSweeper
from tradesim.services.trading_engine import TradingEngine, build_trading_engine
from tradesim.shared.exceptions import AppException

logger = get_logger(__name__)


API_DESCRIPTION = """
## Simulated Trading Bot API

Opens simulated positions against an in-memory portfolio, marks them to a
simulated market and closes them on take-profit, stop-loss, maximum
duration or a predictive close signal.

### Response Format

All API responses follow a standardized format:

```json
{
  "status_code": 200,
  "message": "Operation successful",
  "data": { ... },
  "error": null
}
```
"""


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Starts the auto-close sweeper on startup and stops it on shutdown.
    """
    settings: Settings = app.state.settings
    sweeper: Optional[PositionSweeper] = None

    logger.info("Starting application...")
    if settings.SWEEP_ENABLED:
        sweeper = PositionSweeper(app.state.trading_engine, settings.SWEEP_INTERVAL_SECONDS)
        sweeper.start()
    app.state.sweeper = sweeper
    logger.info("Application started successfully")

    yield

    logger.info("Shutting down application...")
    if sweeper:
        await sweeper.stop()
    logger.info("Application shut down successfully")


def create_app(
    settings: Optional[Settings] = None,
    engine: Optional[TradingEngine] = None
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        settings: Settings to use (default: get_settings())
        engine: Pre-built engine (default: built from settings)
    """
    settings = settings or get_settings()
    setup_logging(level=settings.LOG_LEVEL, format_type=settings.LOG_FORMAT)

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description=API_DESCRIPTION,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.settings = settings
    app.state.trading_engine = engine or build_trading_engine(settings)
    app.state.sweeper = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = "; ".join(
            f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
            for error in errors
        )
        logger.warning(f"Invalid request to {request.url.path}: {detail}")
        return error_json_response(
            status_code=status.HTTP_400_BAD_REQUEST,
            message="Validation failed",
            error_code="VALIDATION_ERROR",
            error_message=detail or "Invalid request"
        )

    @app.exception_handler(AppException)
    async def app_exception_handler(request: Request, exc: AppException):
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
        return exception_json_response(exc, "Request failed")

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {str(exc)}", exc_info=True)
        return error_json_response(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Internal server error",
            error_code="INTERNAL_SERVER_ERROR",
            error_message="An unexpected error occurred"
        )

    app.include_router(trading_router, prefix="/api/v1")

    @app.get("/", tags=["Service"])
    async def root():
        """Service info."""
        return success_response(
            status_code=status.HTTP_200_OK,
            message=f"{settings.APP_NAME} is running",
            data={
                "name": settings.APP_NAME,
                "version": __version__,
                "environment": settings.ENVIRONMENT,
                "docs": "/api/docs",
            }
        )

    @app.get("/health", tags=["Service"])
    async def health(request: Request):
        """Liveness plus a couple of engine counters."""
        engine: TradingEngine = request.app.state.trading_engine
        sweeper: Optional[PositionSweeper] = request.app.state.sweeper
        return success_response(
            status_code=status.HTTP_200_OK,
            message="Service is healthy",
            data={
                "status": "healthy",
                "open_positions": len(engine.book),
                "closed_trades": len(engine.history),
                "sweeper_running": bool(sweeper and sweeper.running),
            }
        )

    return app


app = create_app()
