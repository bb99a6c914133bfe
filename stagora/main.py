"""
Stagora - Main Application

FastAPI backend with:
- MongoDB for every entity
- S3-compatible storage (presigned URLs) for CVs and logos
- SMTP mailer with OTP verification
- JWT authentication

Run: uvicorn stagora.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stagora import __version__
from stagora.api.routes import api_router
from stagora.core.config import get_settings
from stagora.core.logging_config import configure_logging
from stagora.db.mongodb import init_mongo_indexes, test_mongo_connection

settings = get_settings()
configure_logging()
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Stagora",
    description="""
    Internship marketplace between companies and students.

    ## Features
    - **Authentication**: JWT-based auth for students, companies and admins
    - **Companies / Students**: Profiles, bulk student import (JSON / CSV)
    - **Posts**: Internship offers with search, filters and pagination
    - **Applications**: Apply with a CV uploaded through a presigned URL
    - **Forum**: Topics, messages and replies
    - **Reports**: Report forum messages, moderation queue for admins
    - **Moderation**: Admins ban accounts, banned tokens are refused
    - **Notifications**: Per-user inbox with unread counts
    - **Mailer**: Account verification and password reset codes
    - **Stats**: Admin dashboard and public counters
    """,
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(api_router, prefix="/api")


# Startup event
@app.on_event("startup")
async def startup_event():
    """Initialize MongoDB indexes on startup."""
    try:
        init_mongo_indexes()
    except Exception as e:
        logger.warning("MongoDB index initialization failed: %s", e)


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "mongodb": "connected" if test_mongo_connection() else "disconnected"
    }
