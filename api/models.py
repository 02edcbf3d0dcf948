"""
API models and schemas for the FastAPI application.

Book payloads use ``catalog.models.BookDTO`` and ``BookPage`` directly.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")
    status_code: int = Field(..., description="HTTP status code")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Primary store connection status")
    search_index_status: str = Field(..., description="Search index connection status")
    divergent_books: int = Field(0, description="Books whose search index copy is known to be stale")
