"""FastAPI application for the internship platform auth service"""

from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional
import logging
import time
import uuid

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import Counter, Gauge, Histogram, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from internship_auth.config import settings
from internship_auth.core.database import init_db, SessionLocal
from internship_auth.core.exceptions import AuthenticationError, BaseAPIException
from internship_auth.api.v1 import auth, users
from internship_auth.services.session_sweeper import session_sweeper

Path(settings.get_log_file()).parent.mkdir(parents=True, exist_ok=True)
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[
        logging.FileHandler(settings.get_log_file()),
        logging.StreamHandler(),
    ],
)

logger = logging.getLogger(__name__)

REQUEST_COUNT = Counter(
    "internship_auth_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)
REQUEST_LATENCY = Histogram(
    "internship_auth_http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)
AUTH_ERRORS = Counter(
    "internship_auth_errors_total",
    "Authentication and session errors by kind",
    ["kind"],
)
SWEEPER_UP_GAUGE = Gauge("internship_auth_session_sweeper_up", "Session sweeper liveness (1 running, 0 stopped)")


def bootstrap_admin() -> None:
    """Create the configured admin account if no user holds that email"""
    from internship_auth.schemas.user import UserCreate, UserRole
    from internship_auth.services.user_service import user_service

    db = SessionLocal()
    try:
        if user_service.get_user_by_email(db, settings.ADMIN_EMAIL):
            return
        user_service.create_user(
            db,
            UserCreate(
                name=settings.ADMIN_NAME,
                email=settings.ADMIN_EMAIL,
                password=settings.ADMIN_PASSWORD,
                role=UserRole.ADMIN,
            ),
        )
        logger.info("Created bootstrap admin account")
    finally:
        db.close()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Validate config, prepare the database and run the session sweeper"""
    settings.validate_security_settings()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION} ({settings.ENVIRONMENT})")

    init_db()
    try:
        bootstrap_admin()
    except (BaseAPIException, SQLAlchemyError) as e:
        logger.error(f"Failed to create admin user: {e}")

    if settings.RUN_SESSION_SWEEPER:
        session_sweeper.start()
    SWEEPER_UP_GAUGE.set(1 if session_sweeper.is_running() else 0)

    yield

    if session_sweeper.is_running():
        session_sweeper.stop()
    SWEEPER_UP_GAUGE.set(0)
    logger.info(f"Shutting down {settings.APP_NAME}")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    docs_url="/api/docs" if settings.DEBUG else None,
    redoc_url="/api/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)


@app.middleware("http")
async def secure_auth_responses(request: Request, call_next):
    """Tag requests, keep token-bearing responses out of caches, record metrics"""
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id

    start = time.perf_counter()
    response = await call_next(request)
    duration = time.perf_counter() - start

    response.headers["X-Request-ID"] = request_id
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"

    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(duration)
    return response


def _error_response(
    request: Request,
    status_code: int,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    body = {
        "success": False,
        "error": message,
        "path": request.url.path,
        "timestamp": datetime.utcnow().isoformat(),
    }
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(BaseAPIException)
async def api_exception_handler(request: Request, exc: BaseAPIException):
    """Map service errors to their status; 401s carry a Bearer challenge"""
    kind = type(exc).__name__
    AUTH_ERRORS.labels(kind).inc()
    logger.info(f"{kind} on {request.method} {request.url.path}: {exc.message}")

    headers = None
    if isinstance(exc, AuthenticationError):
        headers = {"WWW-Authenticate": 'Bearer error="invalid_token"'}
    return _error_response(request, exc.status_code, exc.message, exc.details, headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Echoing "input" back could leak submitted passwords.
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    return _error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "Validation failed", {"errors": errors}
    )


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.exception(f"Database error on {request.method} {request.url.path}")
    return _error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "A database error occurred. Please try again later."
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)
    return _error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred.")


@app.get("/health")
def health_check():
    """Readiness of the database and the session sweeper"""
    db_ok = True
    db_error = None
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        db_ok = False
        db_error = str(exc)
    finally:
        db.close()

    sweeper_status = session_sweeper.status()
    SWEEPER_UP_GAUGE.set(1 if sweeper_status["running"] else 0)

    return {
        "status": "healthy" if db_ok else "degraded",
        "version": settings.APP_VERSION,
        "readiness": {
            "database": {"ok": db_ok, "error": db_error},
            "session_sweeper": sweeper_status,
        },
    }


@app.get("/metrics")
def metrics():
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/")
def root():
    return {"name": settings.APP_NAME, "version": settings.APP_VERSION, "status": "running"}


app.include_router(auth.router, prefix="/api/v1/auth", tags=["Authentication"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "internship_auth.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        workers=1 if settings.DEBUG else settings.WORKERS,
    )
