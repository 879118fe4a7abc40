from uptimer.models.user import User
from uptimer.models.monitor import Monitor
from uptimer.models.status_history import StatusHistoryEntry
from uptimer.models.daily_stat import DailyStat
from uptimer.models.agent import Agent
from uptimer.models.notification import (
    NotificationChannel,
    NotificationHistory,
    NotificationSettings,
    NotificationTemplate,
)

__all__ = [
    "User",
    "Monitor",
    "StatusHistoryEntry",
    "DailyStat",
    "Agent",
    "NotificationChannel",
    "NotificationTemplate",
    "NotificationSettings",
    "NotificationHistory",
]
