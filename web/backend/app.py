#!/usr/bin/env python3
"""
Ringcall Notification API - FastAPI Application

HTTP surface of the push notification subsystem: the scoring side posts
state transitions, browsers manage their subscriptions, and show
administrators review the retry queue and dead letters.

Usage:
    uv run python -m web.backend.app

Then open:
    - http://localhost:8080/docs - API Documentation (Swagger UI)
    - http://localhost:8080/redoc - Alternative API Documentation
"""

import sys
import logging
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

from fastapi import FastAPI

from .config import get_config
from .exceptions import register_exception_handlers
from .routers import (
    events_router,
    subscriptions_router,
    auth_router,
    admin_router
)
from .routers.admin import add_rate_limit_handlers

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Load configuration
config = get_config()

# Create FastAPI app
app = FastAPI(
    title="Ringcall Notification API",
    description="Push notifications for show events: up soon, gate calls, class starts and announcements",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure rate limiting
add_rate_limit_handlers(app)

# Register exception handlers
register_exception_handlers(app)

# Include routers
app.include_router(events_router)
app.include_router(subscriptions_router)
app.include_router(auth_router)
app.include_router(admin_router)


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "service": "ringcall-notifications"}


def main():
    """Run the web server."""
    import uvicorn

    logger.info(f"Starting Ringcall Notification API on {config.web.host}:{config.web.port}")
    logger.info(f"API Docs: http://{config.web.host}:{config.web.port}/docs")

    uvicorn.run(
        "web.backend.app:app",
        host=config.web.host,
        port=config.web.port,
        reload=False,
        log_level="info"
    )


if __name__ == "__main__":
    main()
