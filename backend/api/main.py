"""Main FastAPI application"""
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import time
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from swipesync.log_config import get_logger
from swipesync.db.session import check_store_health
from swipesync.utils.errors import SwipeSyncError
from api.config import settings
from api.ratelimit import limiter
from api.routers import daily_tasks, predictions, sync
from api.scheduler import start_scheduler, stop_scheduler
from api.schemas.errors import ErrorCode
from api.utils.exceptions import SwipeSyncAPIException, from_domain_error

logger = get_logger(__name__)
api_logger = get_logger("api")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events"""
    # Startup
    logger.info("Starting SwipeSync API...")

    health = check_store_health()
    if health["healthy"]:
        logger.info("Key-value store reachable")
    else:
        logger.warning("Key-value store unreachable at startup", error=health["error"])

    start_scheduler()

    yield

    # Shutdown
    logger.info("Shutting down SwipeSync API...")
    stop_scheduler()


# Create FastAPI app
app = FastAPI(
    title=settings.API_TITLE,
    description="Keeps the prediction-market cache consistent with on-chain state: contract sync, drift checks, task confirmations and claim stats.",
    version=settings.API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "sync", "description": "Contract sync, drift detection and route registry (admin)"},
        {"name": "daily-tasks", "description": "Task confirmations, claim stats and achievement repair"},
        {"name": "predictions", "description": "Cached predictions, price history and positions"},
    ]
)

# Add SlowAPI state and middleware
app.state.limiter = limiter
app.add_middleware(SlowAPIMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["content-type", "x-admin-key"],
)


# Access logging middleware
@app.middleware("http")
async def access_log_middleware(request: Request, call_next):
    """Log all API requests with status and timing"""
    t0 = time.time()
    response = await call_next(request)
    ms = int((time.time() - t0) * 1000)

    api_logger.info(f"{request.method} {request.url.path} {response.status_code} {ms}ms")

    return response


def _error_response(status_code: int, error_code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error_code": error_code,
            "message": message,
            "details": details,
            "status_code": status_code,
        }
    )


# Global exception handlers
@app.exception_handler(SwipeSyncAPIException)
async def swipesync_api_exception_handler(request: Request, exc: SwipeSyncAPIException):
    """Handle API exceptions with standard format"""
    return _error_response(exc.status_code, exc.error_code, str(exc.detail), exc.details)


@app.exception_handler(SwipeSyncError)
async def domain_exception_handler(request: Request, exc: SwipeSyncError):
    """Map core exceptions (validation, auth, store, RPC) to HTTP errors"""
    api_exc = from_domain_error(exc)
    if api_exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return _error_response(api_exc.status_code, api_exc.error_code, str(api_exc.detail), api_exc.details)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        ErrorCode.RATE_LIMIT_EXCEEDED,
        f"Rate limit exceeded: {exc.detail}",
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTPException with standard format"""
    # Map status codes to error codes
    error_code_map = {
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        404: ErrorCode.NOT_FOUND,
        429: ErrorCode.RATE_LIMIT_EXCEEDED,
        500: ErrorCode.INTERNAL_ERROR,
    }

    error_code = error_code_map.get(exc.status_code, "HTTP_ERROR")
    return _error_response(exc.status_code, error_code, str(exc.detail), getattr(exc, "details", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    return _error_response(
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorCode.VALIDATION_ERROR,
        "Validation error",
        {"errors": exc.errors()},
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Catch-all for unexpected errors"""
    logger.exception("Unhandled exception")
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorCode.INTERNAL_ERROR,
        "An unexpected error occurred",
    )


# Include routers
app.include_router(sync.router)
app.include_router(daily_tasks.router)
app.include_router(predictions.router)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": "SwipeSync API",
        "version": settings.API_VERSION,
        "status": "running"
    }


@app.get("/healthz")
def health_check():
    """Health check endpoint, including store reachability"""
    store = check_store_health()
    return {"status": "healthy" if store["healthy"] else "degraded", "store": store}
