import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, String, Boolean, DateTime, Integer, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptimer.config import get_settings
from uptimer.database import Base

settings = get_settings()


class Monitor(Base):
    __tablename__ = "monitors"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    method: Mapped[str] = mapped_column(String(10), default="GET")
    headers: Mapped[dict] = mapped_column(JSON, default=dict)
    body: Mapped[str | None] = mapped_column(Text, nullable=True)
    interval: Mapped[int] = mapped_column(Integer, default=settings.default_check_interval)  # seconds
    timeout: Mapped[int] = mapped_column(Integer, default=settings.default_timeout)  # seconds
    expected_status: Mapped[int] = mapped_column(Integer, default=200)
    active: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default="pending")  # pending, up, down
    last_checked: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    response_time: Mapped[int | None] = mapped_column(Integer, nullable=True)  # ms
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user: Mapped["User"] = relationship(back_populates="monitors")  # noqa: F821
    history: Mapped[list["StatusHistoryEntry"]] = relationship(  # noqa: F821
        back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True
    )
    daily_stats: Mapped[list["DailyStat"]] = relationship(  # noqa: F821
        back_populates="monitor", cascade="all, delete-orphan", passive_deletes=True
    )
