"""
FastAPI application factory for the read-only detections API.

Routes:
- /api/detections -> current DetectionSet snapshot
- /api/status     -> scheduler and source state
"""

from __future__ import annotations

from typing import Optional, Sequence

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .routes import api

DEFAULT_CORS_ORIGINS = ("http://localhost:5173", "http://127.0.0.1:5173")


def create_app(cors_origins: Optional[Sequence[str]] = None) -> FastAPI:
    """Create the FastAPI app and wire the API routes."""
    app = FastAPI(
        title="holodetect",
        version="0.1.0",
        description="On-device object detection pipeline",
    )

    # CORS for browser-based visualization clients
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins or DEFAULT_CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    app.include_router(api.router, prefix="/api")
    return app
