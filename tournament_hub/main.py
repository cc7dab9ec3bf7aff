"""
tournament_hub/main.py
FastAPI application: lifespan, error envelopes, CORS and routers
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from tournament_hub import __version__
from tournament_hub.config.settings import settings, ENV_FILE
from tournament_hub.database import init_db, close_db, AsyncSessionLocal
from tournament_hub.errors import ErrorCode, APIError, new_log_id, translate_integrity_error, get_error_summary
from tournament_hub.events.bus import EventBus, StandingUpdated
from tournament_hub.routes import api_router
from tournament_hub.services.qualification_service import QualificationService
from tournament_hub.services.storage import build_object_store

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


def build_event_bus(
    session_factory: async_sessionmaker,
    mode: Optional[str] = None,
    attempts: Optional[int] = None,
) -> EventBus:
    """Event bus with the qualification recompute subscribed to standing updates."""
    bus = EventBus(
        mode=mode or settings.EVENT_DISPATCH_MODE,
        attempts=attempts if attempts is not None else settings.QUALIFICATION_RECOMPUTE_ATTEMPTS,
    )
    bus.subscribe(StandingUpdated, QualificationService.standing_updated_handler(session_factory))
    return bus


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    logger.info(f"Loaded .env from: {ENV_FILE}")
    try:
        await init_db()
        logger.info("Database connected successfully")
    except Exception as e:
        logger.error(f"Failed to connect to database: {str(e)}")
        raise

    app.state.event_bus = build_event_bus(AsyncSessionLocal)
    app.state.object_store = build_object_store()
    logger.info(f"Event dispatch mode: {app.state.event_bus.mode}, tie-break: {settings.QUALIFICATION_TIEBREAK}")

    yield

    logger.info("Shutting down application...")
    await app.state.event_bus.close()
    try:
        await close_db()
    except Exception as e:
        logger.error(f"Error closing database connection: {str(e)}")


app = FastAPI(
    title="Tournament Hub API",
    description="Esports tournament registration, group stage and qualification backend",
    version=__version__,
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

origins = [
    "http://localhost:3000",
    "http://localhost:5173",
    "http://localhost:8080",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:8080",
]

allowed_origins = settings.ALLOWED_ORIGINS.split(",")
if allowed_origins and allowed_origins[0]:
    origins.extend(o.strip() for o in allowed_origins if o.strip())

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH", "OPTIONS"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    error_details = []
    for error in exc.errors():
        error_details.append({
            "loc": error.get("loc"),
            "msg": error.get("msg"),
            "type": error.get("type")
        })

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "Validation Error",
            "message": "Request body failed validation",
            "code": ErrorCode.VALIDATION_ERROR,
            "details": error_details
        }
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP exception on {request.url.path}: {exc.detail}")

    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content=exc.detail)

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": "Error",
            "message": str(exc.detail),
            "code": ErrorCode.INTERNAL_ERROR if exc.status_code >= 500 else ErrorCode.INVALID_INPUT
        }
    )


@app.exception_handler(APIError)
async def api_error_handler(request: Request, exc: APIError):
    logger.warning(f"API error on {request.url.path}: {exc.code} - {exc.message}")
    return exc.to_response()


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.url.path}: {exc.orig}")
    return translate_integrity_error(exc).to_response()


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    log_id = new_log_id()
    logger.error(f"[{log_id}] Unhandled exception on {request.url.path}: {type(exc).__name__}: {str(exc)}")

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "Internal Error",
            "message": "An unexpected error occurred. Please try again later.",
            "code": ErrorCode.INTERNAL_ERROR,
            "details": {"log_id": log_id}
        }
    )


@app.get("/health", tags=["Health"])
async def health_check(request: Request):
    bus = getattr(request.app.state, "event_bus", None)
    return {
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "version": __version__,
        "pending_recomputes": bus.pending_count if bus else 0,
        "recent_recompute_failures": len(bus.recent_failures) if bus else 0,
    }


@app.get("/api/errors/health", tags=["Health"])
async def error_handling_health():
    return get_error_summary()


app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    reload = settings.is_development
    logger.info(f"Starting server on {settings.HOST}:{settings.PORT}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    uvicorn.run(
        "tournament_hub.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=reload,
        log_level="info"
    )
