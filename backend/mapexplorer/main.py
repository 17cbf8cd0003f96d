import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .catalog import GOOGLE_OPEN_MAPS, PANORAMA_VIEW_TYPES
from .models import ErrorResponse, GoogleOpenMap, HealthResponse, PanoramaViewTypeOption
from .panorama import ViewerEngine
from .routes import router as sessions_router
from .settings import FRONTEND_ORIGIN, LOG_LEVEL, MAX_SESSIONS, SESSION_TTL
from .utils.logging import get_logger, setup_logging
from .utils.sessions import SessionStore

VERSION = "1.0.0"

# Setup logging
setup_logging(LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await app.state.sessions.close_all()
    logger.info("All map sessions closed")


app = FastAPI(
    title="Map Explorer API",
    description="Layer browsing, annotation and panorama sessions for the disaster-management portal",
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.state.sessions = SessionStore(max_size=MAX_SESSIONS, ttl=SESSION_TTL)
app.state.engine_factory = ViewerEngine
app.state.drive_transport = None
app.state.feature_store = None

app.include_router(sessions_router, prefix="/api/sessions", tags=["sessions"])

# CORS configuration
origins = [origin.strip() for origin in FRONTEND_ORIGIN.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log requests with timing and add request ID."""
    request_id = str(uuid.uuid4())[:8]
    start_time = datetime.now(timezone.utc)

    request.state.request_id = request_id

    logger.info(
        "Request started",
        extra={
            'request_id': request_id,
            'method': request.method,
            'url': str(request.url),
            'client_ip': request.client.host if request.client else None
        }
    )

    try:
        response = await call_next(request)
        duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        logger.info(
            "Request completed",
            extra={
                'request_id': request_id,
                'method': request.method,
                'url': str(request.url),
                'status_code': response.status_code,
                'duration_ms': round(duration, 2)
            }
        )

        response.headers["X-Request-ID"] = request_id
        return response

    except Exception as e:
        duration = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000

        logger.error(
            "Request failed",
            extra={
                'request_id': request_id,
                'method': request.method,
                'url': str(request.url),
                'duration_ms': round(duration, 2),
                'error': str(e)
            },
            exc_info=True
        )
        raise


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, 'request_id', 'unknown')


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with structured error response."""
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail), request_id=_request_id(request)).model_dump(),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    first = exc.errors()[0] if exc.errors() else {}
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="Invalid request",
            detail=str(first.get('msg')) if first else None,
            request_id=_request_id(request),
        ).model_dump(),
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=str(exc), request_id=_request_id(request)).model_dump(),
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions with structured error response."""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="Internal server error",
            detail=str(exc) if LOG_LEVEL == "DEBUG" else None,
            request_id=_request_id(request),
        ).model_dump(),
    )


@app.get("/healthz", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint."""
    return HealthResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc).isoformat(),
        version=VERSION,
        sessions=len(request.app.state.sessions),
    )


@app.get("/api/reference/google-maps", response_model=List[GoogleOpenMap])
async def google_maps() -> List[GoogleOpenMap]:
    return GOOGLE_OPEN_MAPS


@app.get("/api/reference/panorama-view-types", response_model=List[PanoramaViewTypeOption])
async def panorama_view_types() -> List[PanoramaViewTypeOption]:
    return PANORAMA_VIEW_TYPES


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
