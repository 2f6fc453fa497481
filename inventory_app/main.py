import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status

from inventory_app.api.v1.events import router as events_router
from inventory_app.api.v1.inventory import router as inventory_router
from inventory_app.api.v1.job_history import router as job_history_router
from inventory_app.api.v1.job_templates import router as job_templates_router
from inventory_app.api.v1.jobs import router as jobs_router
from inventory_app.api.v1.stock import router as stock_router
from inventory_app.api.v1.uploads import router as uploads_router
from inventory_app.core.config import PROJECT_NAME, VERSION
from inventory_app.core.db import close_db, init_db
from inventory_app.core.exception_handlers import setup_exception_handlers
from inventory_app.core.log import configure_logging
from inventory_app.dependencies import close_dependencies

log = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    configure_logging()
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()  # Connect to DB and generate schemas
    yield
    await close_dependencies()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")


app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    # Configure API documentation and paths
    docs_url="/docs",
    redoc_url="/redoc"
)

# Include routers for modular API structure
app.include_router(inventory_router, tags=["Inventory"])
app.include_router(stock_router, tags=["Stock Movements"])
app.include_router(jobs_router, tags=["Jobs"])
app.include_router(job_templates_router, tags=["Job Templates"])
app.include_router(job_history_router, tags=["Job History"])
app.include_router(uploads_router, tags=["Uploads"])
app.include_router(events_router, tags=["Storage Events"])


setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
