"""
Data models for real-time link events.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from smartshort_app.models.short_link import utcnow


class LinkEventType(str, Enum):
    CREATED = "link.created"
    RESOLVED = "link.resolved"
    UPDATED = "link.updated"
    DELETED = "link.deleted"


class LinkEvent(BaseModel):
    """
    Event pushed to the owner's real-time channel.

    Delivery is best effort: nothing on the request path waits for it.
    """

    type: LinkEventType = Field(..., description="What happened to the link")
    owner_id: str = Field(..., description="Owner whose channel receives the event")
    link_id: str = Field(..., description="Id of the affected link")
    short_code: Optional[str] = Field(None, description="Short code at the time of the event")
    clicks: Optional[int] = Field(None, description="Click count after the event")
    timestamp: datetime = Field(default_factory=utcnow, description="When the event occurred")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "type": "link.resolved",
                "owner_id": "user-42",
                "link_id": "0b9c7a52-6a5e-4d0c-9f61-3c1f2f0c8f10",
                "short_code": "aZ3k9Q",
                "clicks": 17,
                "timestamp": "2026-10-19T10:30:00Z"
            }
        }
    )
