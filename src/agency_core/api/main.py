"""Agency Core FastAPI application."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__, crud, models
from ..config import get_settings
from ..database import SessionLocal, engine
from .routers import (
    auth,
    users,
    clients,
    projects,
    tasks,
    financials,
    resources,
    resource_allocations,
    ai_models,
    ai_deployments,
    dashboard,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("agency-core")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, seed built-in roles and the optional bootstrap admin."""
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        crud.ensure_default_roles(db)
        admin = crud.bootstrap_admin(db, get_settings())
        if admin:
            logger.info(f"Bootstrap admin available: {admin.email}")
    finally:
        db.close()
    logger.info("Agency Core API started")
    yield


# Create FastAPI app
app = FastAPI(
    title="Agency Core API",
    description="Agency management: clients, projects, tasks, financials, resources and AI deployments",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request validation failures as 400 Bad Request."""
    logger.debug(f"Validation failed for {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": jsonable_encoder(exc.errors())},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Log unexpected failures and return a generic message."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# Include all business logic routers with /api/v1 prefix
app.include_router(auth.router, prefix="/api/v1/auth")
app.include_router(users.router, prefix="/api/v1")
app.include_router(clients.router, prefix="/api/v1/clients")
app.include_router(projects.router, prefix="/api/v1/projects")
app.include_router(tasks.router, prefix="/api/v1/tasks")
app.include_router(financials.router, prefix="/api/v1/financials")
app.include_router(resources.router, prefix="/api/v1/resources")
app.include_router(resource_allocations.router, prefix="/api/v1/resource-allocations")
app.include_router(ai_models.router, prefix="/api/v1/ai-models")
app.include_router(ai_deployments.router, prefix="/api/v1/ai-deployments")
app.include_router(dashboard.router, prefix="/api/v1/dashboard")


@app.get("/")
def root():
    """Root endpoint with server info."""
    return {
        "name": "Agency Core API",
        "version": __version__,
        "authentication": "bearer",
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
