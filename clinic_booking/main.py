import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Import models so every table is registered with Base before create_all
from . import models  # noqa: F401
from .config import ALLOWED_ORIGINS, CLINIC_TIMEZONE
from .database import Base, engine
from .domain.appointments.router import router as appointments_router
from .domain.medical_history.router import router as medical_history_router
from .domain.scheduling.router_schedules import router as schedules_router
from .exceptions import BookingError
from .shared.responses import error_body

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Application starting up (clinic timezone {CLINIC_TIMEZONE})...")
    try:
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created successfully")
    except Exception as e:
        # Ignore "already exists" errors from race conditions between workers
        error_msg = str(e)
        if "already exists" in error_msg or "duplicate key" in error_msg:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"Failed to create database tables: {e}")

    try:
        from .rate_limiter import get_redis_client

        get_redis_client()  # Connection test
        logger.info("Redis connection established")
    except Exception as e:
        logger.warning(f"Redis connection failed - rate limiting and slot cache degrade to local/none: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Clinic Booking API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.conflicts))


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    # Writes are wrapped in StorageError by the services; this catches failed reads
    logger.error(f"{request.method} {request.url.path} database error: {exc}")
    return JSONResponse(status_code=500, content=error_body("Database error, please try again later"))


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    message = exc.detail.get("message") if isinstance(exc.detail, dict) else str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors from HTTPBearer to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content=error_body(
                    "Not authenticated. Please provide a valid Bearer token in the Authorization header."
                ),
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{field}: {first.get('msg')}" if field else str(first.get("msg", "Invalid request"))
    return JSONResponse(status_code=422, content=error_body(message))


logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Routes
app.include_router(schedules_router)
app.include_router(appointments_router)
app.include_router(medical_history_router)


@app.get("/")
def root():
    return {"message": "Clinic Booking API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}
