"""
Data models for events published on the logistics event bus.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from .enums import EventSource


class LogisticsEvent(BaseModel):
    """Base event for order workflow interactions."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str  # e.g. "order.status_changed"
    payload: dict[str, Any]
    source: EventSource
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
