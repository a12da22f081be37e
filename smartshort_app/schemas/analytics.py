from datetime import datetime
from typing import Dict, List, Optional

from pydantic import Field, field_validator

from smartshort_app.models.short_link import as_utc
from smartshort_app.schemas.short_link import CamelModel


class LinkStats(CamelModel):
    total_clicks: int
    unique_clicks: int = Field(..., description="Distinct visitor IPs in the retained history")
    last_clicked: Optional[datetime] = None
    clicks_by_day: Dict[str, int] = Field(default_factory=dict, description="Last 7 days")
    total_history: int

    @field_validator("last_clicked")
    @classmethod
    def _utc(cls, value):
        return as_utc(value)


class TopLink(CamelModel):
    id: str
    short_code: str
    original_url: str
    title: Optional[str] = None
    clicks: int


class UserStats(CamelModel):
    total_urls: int
    total_clicks: int
    recent_urls: int = Field(..., description="Created in the last 7 days")
    top_urls: List[TopLink] = Field(default_factory=list)
    clicks_by_day: Dict[str, int] = Field(default_factory=dict, description="Last 30 days")


class DomainCount(CamelModel):
    domain: str
    count: int


class GlobalStats(CamelModel):
    total_urls: int
    total_clicks: int
    recent_urls: int = Field(..., description="Created in the last 24 hours")
    recent_clicks: int = Field(..., description="Clicks in the last 24 hours")
    top_domains: List[DomainCount] = Field(default_factory=list)
