"""
FastAPI application for Meetspace.
Wires the lifespan, middleware, error rendering and the v1 router.
"""

import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api.v1.router import router as api_router
from .core.config import config
from .core.exceptions import MeetspaceError
from .db.database import db_manager
from .db.redis_client import redis_connection
from .services.chapa_client import chapa_client
from .services.jwt_service import jwt_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Bring up the database, optional Redis cache, token verifier and payment
    provider settings; release connections on shutdown.
    """
    logger.info("Starting Meetspace API...")

    try:
        await db_manager.initialize()
        try:
            db_manager.create_tables()
        except Exception as e:
            logger.warning(f"Skipping table creation: {e}")

        try:
            await redis_connection.initialize()
        except Exception as e:
            # Caching is optional; reads go straight to the database
            logger.warning(f"Redis unavailable, continuing without cache: {e}")

        await jwt_service.initialize()
        await chapa_client.initialize_config()

        logger.info("Meetspace API started successfully")

    except Exception as e:
        logger.error(f"Failed to start Meetspace API: {e}")
        raise

    yield

    logger.info("Shutting down Meetspace API...")

    try:
        db_manager.close()
        await redis_connection.close()
        logger.info("Meetspace API shut down successfully")

    except Exception as e:
        logger.error(f"Error during shutdown: {e}")


app = FastAPI(
    title="Meetspace API",
    description="Event management, registration and ticketing",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_header(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Process-Time"] = f"{time.perf_counter() - started:.6f}"
    return response


@app.exception_handler(MeetspaceError)
async def meetspace_error_handler(request: Request, exc: MeetspaceError):
    """Domain errors carry their own status and code."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    else:
        logger.info(f"{exc.code}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={**exc.to_dict(), "timestamp": datetime.now().isoformat()}
    )


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    """Framework and route HTTPExceptions share the error envelope."""
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail}")

    return JSONResponse(
        status_code=exc.status_code,
        headers=exc.headers,
        content={
            "error_code": "HTTP_ERROR",
            "error_message": exc.detail,
            "status_code": exc.status_code,
            "timestamp": datetime.now().isoformat()
        }
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)

    details = {} if await config.is_production() else {"exception": str(exc)}
    return JSONResponse(
        status_code=500,
        content={
            "error_code": "INTERNAL_SERVER_ERROR",
            "error_message": "Something went wrong on our side",
            "details": details,
            "timestamp": datetime.now().isoformat()
        }
    )


app.include_router(api_router)


@app.get("/")
async def root():
    return {
        "service": "Meetspace API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "api": "/api/v1",
            "health": "/api/v1/health",
            "docs": "/docs",
            "redoc": "/redoc"
        }
    }


@app.get("/health")
async def liveness():
    """Process liveness; dependency checks live at /api/v1/health."""
    return {"status": "healthy", "service": "meetspace"}
