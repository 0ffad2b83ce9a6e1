"""
Price Charts - Main FastAPI Application

Interactive price charts with technical indicator overlays.
"""

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from .database.connection import init_database, check_database_exists
from .api import chart, settings

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    # Startup
    logger.info("Starting Price Charts...")

    # Initialize database
    await init_database()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down Price Charts...")


# Create FastAPI application
app = FastAPI(
    title="Price Charts",
    description="Interactive price charts with technical indicator overlays",
    version="1.0.0",
    lifespan=lifespan
)

# Add CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:8000", "http://127.0.0.1:8000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===========================================
# Include API Routers
# ===========================================

app.include_router(chart.router, prefix="/api/chart", tags=["Charts"])
app.include_router(settings.router, prefix="/api/settings", tags=["Settings"])


# ===========================================
# Error Handlers
# ===========================================

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    """Handle 404 errors."""
    message = getattr(exc, "detail", None) or "Resource not found"
    return JSONResponse(
        status_code=404,
        content={"success": False, "message": message}
    )


@app.exception_handler(500)
async def server_error_handler(request: Request, exc: Exception):
    """Handle 500 errors."""
    logger.error(f"Server error: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "message": "Internal server error"}
    )


# ===========================================
# Health Check
# ===========================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    db_exists = await check_database_exists()
    return {
        "status": "healthy",
        "database": "connected" if db_exists else "not initialized"
    }
