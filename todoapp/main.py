import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from todoapp.api.v1.endpoints.tasks import router as tasks_router
from todoapp.api.v1.endpoints.uploads import router as uploads_router
from todoapp.core.config import settings
from todoapp.core.database import session_manager, aget_db
from todoapp.core.exceptions import InvalidModeTransition, InvalidTaskOperation, Unauthorized

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address, default_limits=[settings.RATE_LIMIT])


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Async context manager for app lifespan events"""

    try:
        logger.info("🚀 Starting todo application...")
        logger.info("🔌 Initializing database connection pool...")
        await session_manager.init()
        logger.info("✅ Database connection pool ready")
    except Exception as e:
        logger.critical(f"🔥 Application startup failed: {str(e)}")
        raise

    try:
        logger.info("🏁 Todo application startup complete")
        yield
    finally:
        logger.info("🛑 Beginning application shutdown...")
        logger.info("🔌 Closing database connections...")
        await session_manager.close()
        logger.info("👋 Application shutdown complete")


app = FastAPI(
    title="Todo API",
    description="Personal task lists with ordering, attachments and bulk operations",
    version="1.0.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Request: {request.method} {request.url}")
    response = await call_next(request)
    logger.info(f"Response status: {response.status_code}")
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.error(f"Validation Error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={"detail": exc.errors()},
    )


@app.exception_handler(Unauthorized)
async def unauthorized_exception_handler(request: Request, exc: Unauthorized):
    return JSONResponse(status_code=401, content={"detail": "Not authenticated"})


@app.exception_handler(InvalidTaskOperation)
@app.exception_handler(InvalidModeTransition)
async def invalid_operation_exception_handler(request: Request, exc: Exception):
    logger.info(f"Rejected operation on {request.url.path}: {str(exc)}")
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    logger.error(f"Database error on {request.method} {request.url.path}: {str(exc)}", exc_info=exc)
    return JSONResponse(status_code=500, content={"detail": "Database operation failed"})


@app.get("/", tags=["Health Check"])
async def health_check(db: AsyncSession = Depends(aget_db)):
    try:
        await db.execute(text("SELECT 1"))
        return {
            "status": "healthy",
            "service": "Todo API",
            "database": "connected",
        }
    except Exception as e:
        logger.error(f"Health check failed: {str(e)}")
        return {
            "status": "unhealthy",
            "service": "Todo API",
            "database": "disconnected",
            "error": str(e)
        }


app.include_router(tasks_router, prefix="/api/v1", tags=["Tasks"])
app.include_router(uploads_router, prefix="/api/v1", tags=["Uploads"])

logger.info(f"✅ Loaded {len(app.routes)} routes")
