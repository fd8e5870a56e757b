# school_attendance/backend/main.py
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.exceptions import HTTPException as StarletteHTTPException
import redis.asyncio as redis
import asyncpg
from apscheduler.schedulers.asyncio import AsyncIOScheduler as Scheduler
import logging

from slowapi.errors import RateLimitExceeded

from .config.config import settings
from .logging.logging_config import setup_logging
from .api import admin, auth, employee, student, teacher
from .api.schemas.envelope import failure
from .db.db_client import AsyncPostgresClient
from .modules.school_calendar import school_timezone
from .services.attendance_service import AttendanceService
from .services.errors import ServiceError, validation_errors_to_fields
from .services.user_service import UserService
from .tasks.cron import reset_stale_sign_times_task
from .api.utilities.limiter import limiter

setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Creates the connection pools, the schema and the daily maintenance job on
    startup, and tears them down on shutdown.
    """
    logger.info("Application starting...")

    app.state.postgres_pool = None
    app.state.redis_pool = None
    app.state.scheduler = None

    try:
        postgres_pool = await asyncpg.create_pool(
            dsn=settings.DATABASE_URL, min_size=2, max_size=10
        )
        redis_pool = redis.ConnectionPool.from_url(
            settings.APPLICATION_REDIS_URL, decode_responses=True
        )
        app.state.postgres_pool = postgres_pool
        app.state.redis_pool = redis_pool
        logger.info("PostgreSQL and Redis connection pools created.")

        db_client = AsyncPostgresClient(pool=postgres_pool)
        await db_client.init_schema()
        logger.info("Database schema is ready.")

        attendance_service = AttendanceService(db_client=db_client, user_service=UserService(db_client=db_client))
        tz = school_timezone()
        scheduler = Scheduler(timezone=tz) if tz else Scheduler()
        scheduler.add_job(
            reset_stale_sign_times_task, "cron", hour=0, minute=0,
            args=[attendance_service], id="reset_stale_sign_times"
        )
        scheduler.start()
        app.state.scheduler = scheduler
        logger.info("Scheduled jobs started.")

    except Exception as e:
        logger.error(f"Startup failed: {e}", exc_info=True)

    yield

    logger.info("Application shutting down...")
    if app.state.scheduler:
        app.state.scheduler.shutdown()
        logger.info("Scheduler stopped.")
    if app.state.postgres_pool:
        await app.state.postgres_pool.close()
        logger.info("PostgreSQL connection pool closed.")
    if app.state.redis_pool:
        await app.state.redis_pool.disconnect()
        logger.info("Redis connection pool closed.")


app = FastAPI(
    title="School Attendance API",
    description="Badge sign-in/sign-out and user management for a single school",
    version="1.0.0",
    lifespan=lifespan
)
app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Every failure answers {"success": false, "message": ...} ---

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content=failure(exc.message, exc.errors))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=failure(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=400,
        content=failure("Validation error", validation_errors_to_fields(exc.errors())),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(status_code=429, content=failure(f"Rate limit exceeded: {exc.detail}"))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=failure("Internal server error"))


app.include_router(auth.router, prefix="/api")
app.include_router(admin.router, prefix="/api")
app.include_router(student.router, prefix="/api")
app.include_router(teacher.router, prefix="/api")
app.include_router(employee.router, prefix="/api")


@app.get("/health", tags=["System"])
def health_check():
    """Liveness probe."""
    return {"success": True, "status": "ok", "message": "School Attendance API is running."}
