# saikaki/main.py
"""
FastAPI application entry point.
Sets up the web server, middleware, database migrations, and API routes.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routers import health, sessions, chat, images
from .database import log_where_am_i
from .config import settings

# Configure logging level from environment variable
logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)

ALEMBIC_INI = Path(__file__).resolve().parents[1] / "alembic.ini"

# Create FastAPI application instance
app = FastAPI(title="Sai Kaki API", version="0.1.0")

# ---- CORS Middleware ----
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---- Database Migration Function ----
def run_migrations() -> None:
    """Run Alembic database migrations on startup."""
    # Ensure Alembic sees DATABASE_URL
    os.environ.setdefault("DATABASE_URL", settings.DATABASE_URL)
    logger.warning("Running Alembic migrations...")
    subprocess.check_call(["alembic", "-c", str(ALEMBIC_INI), "upgrade", "head"])
    logger.warning("Migrations complete.")

# ---- Startup Event Handler ----
@app.on_event("startup")
def _bootstrap() -> None:
    """Migrate (unless RUN_MIGRATIONS=0) and log connection details on app startup."""
    if settings.RUN_MIGRATIONS:
        run_migrations()
    log_where_am_i()  # Log database backend + name

# ---- API Routes ----
app.include_router(health.router)
app.include_router(sessions.router)
app.include_router(chat.router)
app.include_router(images.router)

# ---- Root Endpoint ----
@app.get("/")
def root():
    """Banner for the root path."""
    return {"status": "ok", "message": "Sai Kaki backend is running"}
