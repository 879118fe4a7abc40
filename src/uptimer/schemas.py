from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from uptimer.config import get_settings

settings = get_settings()


# --- Monitor schemas ---

class CheckResultResponse(BaseModel):
    status: str
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class ManualCheckResponse(BaseModel):
    monitor_id: str
    previous_status: str
    result: CheckResultResponse


class StatusHistoryResponse(BaseModel):
    id: str
    monitor_id: str
    timestamp: datetime
    status: str
    response_time: Optional[int] = None
    status_code: Optional[int] = None
    error: Optional[str] = None

    model_config = {"from_attributes": True}


class DailyStatResponse(BaseModel):
    monitor_id: str
    date: date
    total_checks: int
    up_checks: int
    down_checks: int
    avg_response_time: float
    availability: float
    outage_count: int

    model_config = {"from_attributes": True}


# --- Notification schemas ---

class NotificationHistoryResponse(BaseModel):
    id: str
    type: str
    target_id: str
    channel_id: str
    template_id: Optional[str] = None
    status: str
    content: str
    error: Optional[str] = None
    sent_at: datetime

    model_config = {"from_attributes": True}


class NotificationHistoryPage(BaseModel):
    total: int
    records: list[NotificationHistoryResponse]


class NotificationSettingsUpdate(BaseModel):
    enabled: bool = False
    on_down: bool = False
    on_recovery: bool = False
    on_offline: bool = False
    on_cpu_threshold: bool = False
    cpu_threshold: float = settings.default_cpu_threshold
    on_memory_threshold: bool = False
    memory_threshold: float = settings.default_memory_threshold
    on_disk_threshold: bool = False
    disk_threshold: float = settings.default_disk_threshold
    channels: list[str] = Field(default_factory=list)
    template_id: Optional[str] = None

    @field_validator("cpu_threshold", "memory_threshold", "disk_threshold")
    @classmethod
    def threshold_valid(cls, v: float) -> float:
        if v < 0 or v > 100:
            raise ValueError("Threshold must be between 0 and 100")
        return v

    @field_validator("channels", mode="before")
    @classmethod
    def channels_as_strings(cls, v):
        if v is None:
            return []
        return [str(c) for c in v]
