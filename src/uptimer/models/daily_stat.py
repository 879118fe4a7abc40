import uuid
import datetime
from sqlalchemy import String, Date, Float, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from uptimer.database import Base


class DailyStat(Base):
    """Per-day aggregate of a monitor's checks, folded in one sample at a time."""

    __tablename__ = "monitor_daily_stats"
    __table_args__ = (
        UniqueConstraint("monitor_id", "date", name="uq_daily_stats_monitor_date"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    monitor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("monitors.id", ondelete="CASCADE"), nullable=False, index=True
    )
    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    total_checks: Mapped[int] = mapped_column(Integer, default=0)
    up_checks: Mapped[int] = mapped_column(Integer, default=0)
    down_checks: Mapped[int] = mapped_column(Integer, default=0)
    total_response_time: Mapped[int] = mapped_column(Integer, default=0)  # ms, sum
    avg_response_time: Mapped[float] = mapped_column(Float, default=0.0)
    availability: Mapped[float] = mapped_column(Float, default=100.0)  # percent
    outage_count: Mapped[int] = mapped_column(Integer, default=0)
    last_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    monitor: Mapped["Monitor"] = relationship(back_populates="daily_stats")  # noqa: F821
