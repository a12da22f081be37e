from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text

from smartshort_app.database.connection import Base
from smartshort_app.models.short_link import utcnow


class ClickEvent(Base):
    """
    One entry of a link's click history.

    Insertion order (autoincrement id) is history order, so pruning keeps
    the rows with the highest ids.
    """
    __tablename__ = "click_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    short_link_id = Column(
        String(36),
        ForeignKey("short_links.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    clicked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    # Request metadata
    ip_address = Column(String(45), nullable=True)  # IPv4 or IPv6
    user_agent = Column(Text, nullable=True)
    referrer = Column(Text, nullable=True)

    # Geo / device
    country = Column(String(64), nullable=True)
    city = Column(String(128), nullable=True)
    device = Column(String(32), nullable=True)
    browser = Column(String(64), nullable=True)

    def __repr__(self) -> str:
        return f"<ClickEvent {self.id} for link {self.short_link_id}>"
