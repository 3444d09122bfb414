from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from cvmatch.routers import users, cvs, projects
from cvmatch.services.db import init_indexes
from cvmatch.utils.exceptions import DatabaseError

from cvmatch.utils.logging_config import configure_for_environment, get_logger
from cvmatch.middleware.error_handlers import (
    ExceptionHandlerMiddleware,
    PerformanceMiddleware,
    HealthCheckMiddleware
)

# Configure logging first
configure_for_environment()
logger = get_logger(__name__)

API_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager"""
    logger.info("CV Matching API starting up...")

    try:
        await init_indexes()
    except DatabaseError as e:
        logger.warning(f"Database index initialization had issues: {e.message}", extra={"details": e.details})
        logger.info("Application will continue - some operations may be slower without indexes")

    logger.info("CV Matching API startup completed")

    yield

    logger.info("CV Matching API shutting down...")


app = FastAPI(title="CV Matching API", version=API_VERSION, lifespan=lifespan)

# Last added runs first: health checks short-circuit, then exception handling wraps the rest
app.add_middleware(PerformanceMiddleware, slow_request_threshold=2.0)
app.add_middleware(ExceptionHandlerMiddleware)
app.add_middleware(HealthCheckMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
@app.head("/")
async def root():
    """Root endpoint - handles both GET and HEAD requests for health checks"""
    logger.debug("Root endpoint accessed")
    return {"message": "Welcome to the CV Matching API", "version": API_VERSION, "status": "ok"}


@app.get("/health")
@app.head("/health")
async def health_check():
    """Health check endpoint (normally answered by HealthCheckMiddleware)"""
    return {"status": "healthy", "timestamp": datetime.utcnow().isoformat()}


app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(cvs.router, prefix="/api/cvs", tags=["cvs"])
app.include_router(projects.router, prefix="/api/projects", tags=["projects"])

logger.info("CV Matching API initialized successfully")
