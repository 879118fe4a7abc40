from uptimer.notifications.dispatcher import notify_agent_event, notify_monitor_event
from uptimer.notifications.resolver import NotificationEvent

__all__ = ["NotificationEvent", "notify_agent_event", "notify_monitor_event"]
