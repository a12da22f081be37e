import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text

from smartshort_app.database.connection import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite returns them naive)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


class ShortLink(Base):
    """
    A short code -> target URL mapping (the alias registry).

    short_code is protected by a storage-level UNIQUE constraint; the
    application pre-check is only an optimisation.

    clicks is an independent counter. The click history (ClickEvent rows)
    is capped and pruned from the oldest end, which never touches clicks.
    History rows go away with the link through ON DELETE CASCADE.
    """
    __tablename__ = "short_links"

    id = Column(String(36), primary_key=True, default=_new_id)
    original_url = Column(Text, nullable=False)
    # unique=True creates the uniqueness constraint; index=True speeds up redirects
    short_code = Column(String(32), unique=True, nullable=False, index=True)
    custom_alias = Column(String(20), nullable=True)
    owner_id = Column(String(64), nullable=False, index=True)

    title = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    keywords = Column(JSON, nullable=False, default=list)
    preview_image = Column(Text, nullable=True)
    domain = Column(String(255), nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    expires_at = Column(DateTime(timezone=True), nullable=True, index=True)

    clicks = Column(Integer, nullable=False, default=0)
    last_clicked = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<ShortLink {self.short_code} -> {self.original_url}>"
