"""
NoteSync Backend — Shared Response Schemas
===========================================

What:  Error, health and activity response models shared by all routers.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """
    Standardized error body for every failure.

    Example:
        {
            "error": "conflict",
            "message": "Category 'work' already exists",
            "details": {"constraint": "uq_categories_owner_lower_name"},
            "request_id": "1a2b3c4d"
        }
    """
    error: str = Field(description="Machine-readable error kind")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str
    database: str = Field(description="connected or disconnected")
    generation: str = Field(
        description="available, unavailable, circuit_open, unconfigured or basic"
    )
    uptime_seconds: float


class ActivityRecordResponse(BaseModel):
    event: str
    entity: str
    entity_id: Optional[str] = None
    owner_id: Optional[str] = None
    timestamp: datetime
    details: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"from_attributes": True}
