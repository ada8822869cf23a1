from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
import os

from docvault.core.config import settings
from docvault.core.database import engine, Base
from docvault.api.error_handlers import register_error_handlers
from docvault.api.routes import auth, folders, documents, share
from docvault.services.azure_blob import blob_service
import docvault.models  # noqa: F401  (registers every table on Base.metadata)

# Configure Application Insights if available
appinsights_key = os.getenv("APPINSIGHTS_INSTRUMENTATIONKEY")
if appinsights_key:
    try:
        from opencensus.ext.azure.log_exporter import AzureLogHandler

        # Configure logging with Application Insights
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=[
                logging.StreamHandler(),
                AzureLogHandler(connection_string=f"InstrumentationKey={appinsights_key}")
            ]
        )
        logger = logging.getLogger(__name__)
        logger.info("Application Insights logging configured")
    except Exception as e:
        # Fallback to standard logging if Application Insights fails
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )
        logger = logging.getLogger(__name__)
        logger.warning(f"Failed to configure Application Insights: {e}")
else:
    # Standard logging if no Application Insights key
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    import asyncio

    logger.info("Starting up application...")

    async def initialize_resources():
        """Initialize database and blob storage in background."""
        try:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created successfully")
        except Exception as e:
            logger.error(f"Failed to create database tables: {e}")

        try:
            await blob_service.ensure_container_exists()
            logger.info("Blob storage container verified")
        except Exception as e:
            logger.error(f"Failed to verify blob storage container: {e}")

        logger.info("Background initialization complete")

    # Start initialization in background without waiting
    init_task = asyncio.create_task(initialize_resources())

    logger.info("Application ready to accept requests")

    yield

    logger.info("Shutting down application...")
    if not init_task.done():
        init_task.cancel()
    await engine.dispose()


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Multi-tenant document vault with protected, nested folders and expiring share links",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Include routers
app.include_router(auth.router, prefix=settings.API_V1_PREFIX)
app.include_router(folders.router, prefix=settings.API_V1_PREFIX)
app.include_router(documents.router, prefix=settings.API_V1_PREFIX)
app.include_router(share.router, prefix=settings.API_V1_PREFIX)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Document Vault API",
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "docvault.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.ENVIRONMENT == "development"
    )
