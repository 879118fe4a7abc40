import uuid
from datetime import datetime, timezone
from sqlalchemy import JSON, String, Boolean, DateTime, Float, ForeignKey, Index, Text, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column

from uptimer.database import Base

# target_type values for NotificationSettings
GLOBAL_MONITOR = "global-monitor"
GLOBAL_AGENT = "global-agent"
TARGET_MONITOR = "monitor"
TARGET_AGENT = "agent"


class NotificationChannel(Base):
    __tablename__ = "notification_channels"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # telegram, resend, feishu, wecom, webhook
    config: Mapped[dict] = mapped_column(JSON, default=dict)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class NotificationTemplate(Base):
    __tablename__ = "notification_templates"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # monitor, agent
    subject: Mapped[str] = mapped_column(String(500), default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


class NotificationSettings(Base):
    """Event flags, thresholds and channels for one target (or the global default).

    Rows are only ever written through upsert_notification_settings, which keeps
    at most one row per (user_id, target_type, target_id). Global rows have a NULL
    target_id, which the unique constraint ignores, so a partial index covers them.
    """

    __tablename__ = "notification_settings"
    __table_args__ = (
        UniqueConstraint(
            "user_id", "target_type", "target_id", name="uq_notification_settings_target"
        ),
        Index(
            "uq_notification_settings_global",
            "user_id",
            "target_type",
            unique=True,
            sqlite_where=text("target_id IS NULL"),
            postgresql_where=text("target_id IS NULL"),
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_type: Mapped[str] = mapped_column(String(20), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(36), nullable=True)  # None for global rows
    enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    on_down: Mapped[bool] = mapped_column(Boolean, default=False)
    on_recovery: Mapped[bool] = mapped_column(Boolean, default=False)
    on_offline: Mapped[bool] = mapped_column(Boolean, default=False)
    on_cpu_threshold: Mapped[bool] = mapped_column(Boolean, default=False)
    cpu_threshold: Mapped[float] = mapped_column(Float, default=90.0)
    on_memory_threshold: Mapped[bool] = mapped_column(Boolean, default=False)
    memory_threshold: Mapped[float] = mapped_column(Float, default=85.0)
    on_disk_threshold: Mapped[bool] = mapped_column(Boolean, default=False)
    disk_threshold: Mapped[float] = mapped_column(Float, default=90.0)
    channels: Mapped[list] = mapped_column(JSON, default=list)  # ordered channel ids
    template_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("notification_templates.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )


class NotificationHistory(Base):
    """Audit row per (channel, attempt). Append only."""

    __tablename__ = "notification_history"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # monitor, agent
    target_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    channel_id: Mapped[str] = mapped_column(String(36), nullable=False)
    template_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False)  # sent, failed
    content: Mapped[str] = mapped_column(Text, default="")
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True
    )
