"""
Main FastAPI application entry point.
Configures the application, middleware, and includes routers.
"""
from dotenv import load_dotenv

# Load environment variables from .env file first
load_dotenv()

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from .auth.router import router as auth_router
from .medical_records.router import prescriptions_router, test_results_router
from .config import settings
from .core.cloudinary import init_storage
from .core.middleware import setup_middlewares
from .database import init_db
from .exceptions import register_exception_handlers

API_VERSION = "1.0.0"

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create missing tables and the file storage client on startup."""
    logger.info("Starting Prescripto records API...")
    init_db()
    init_storage(settings)
    yield
    logger.info("Prescripto records API stopped")

# Create FastAPI application
app = FastAPI(
    title="Prescripto Records API",
    description="Prescriptions and lab test results for the Prescripto clinic",
    version=API_VERSION,
    lifespan=lifespan
)

# Register exception handlers
register_exception_handlers(app)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup custom middleware
setup_middlewares(app)

# Include routers
app.include_router(auth_router)
app.include_router(prescriptions_router)
app.include_router(test_results_router)

# Root endpoint
@app.get("/")
def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API version
    """
    return {"message": "Welcome to the Prescripto Records API", "version": API_VERSION}

# Health check endpoint
@app.get("/health")
def health_check():
    """
    Health check endpoint for monitoring.

    Returns:
        dict: Health status information
    """
    return {"status": "healthy", "database": "connected"}
