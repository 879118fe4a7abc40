"""
Notification policy resolution.

A target's effective policy is its specific settings row if one exists,
otherwise the global row for its kind. There is no field-level merge: the
specific row replaces the global one entirely. Everything here is pure and
works on any object exposing the NotificationSettings attributes.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional


class NotificationEvent(str, Enum):
    DOWN = "down"
    RECOVERY = "recovery"
    OFFLINE = "offline"
    AGENT_RECOVERY = "agent_recovery"
    CPU_THRESHOLD = "cpu_threshold"
    MEMORY_THRESHOLD = "memory_threshold"
    DISK_THRESHOLD = "disk_threshold"


_EVENT_FLAGS = {
    NotificationEvent.DOWN: "on_down",
    NotificationEvent.RECOVERY: "on_recovery",
    NotificationEvent.OFFLINE: "on_offline",
    NotificationEvent.AGENT_RECOVERY: "on_recovery",
    NotificationEvent.CPU_THRESHOLD: "on_cpu_threshold",
    NotificationEvent.MEMORY_THRESHOLD: "on_memory_threshold",
    NotificationEvent.DISK_THRESHOLD: "on_disk_threshold",
}


@dataclass(frozen=True)
class EffectivePolicy:
    source: str  # target_type of the row the policy came from
    enabled: bool = False
    on_down: bool = False
    on_recovery: bool = False
    on_offline: bool = False
    on_cpu_threshold: bool = False
    cpu_threshold: float = 90.0
    on_memory_threshold: bool = False
    memory_threshold: float = 85.0
    on_disk_threshold: bool = False
    disk_threshold: float = 90.0
    channels: tuple[str, ...] = ()
    template_id: Optional[str] = None

    @property
    def is_override(self) -> bool:
        return not self.source.startswith("global-")


def dedupe_channels(channel_ids: Optional[Iterable]) -> tuple[str, ...]:
    """Drop duplicates and empties, keeping first-seen order."""
    seen: list[str] = []
    for channel_id in channel_ids or ():
        if channel_id is None or channel_id == "":
            continue
        key = str(channel_id)
        if key not in seen:
            seen.append(key)
    return tuple(seen)


def _policy_from_row(row) -> EffectivePolicy:
    return EffectivePolicy(
        source=row.target_type,
        enabled=bool(row.enabled),
        on_down=bool(row.on_down),
        on_recovery=bool(row.on_recovery),
        on_offline=bool(row.on_offline),
        on_cpu_threshold=bool(row.on_cpu_threshold),
        cpu_threshold=float(row.cpu_threshold),
        on_memory_threshold=bool(row.on_memory_threshold),
        memory_threshold=float(row.memory_threshold),
        on_disk_threshold=bool(row.on_disk_threshold),
        disk_threshold=float(row.disk_threshold),
        channels=dedupe_channels(row.channels),
        template_id=row.template_id,
    )


def resolve(global_settings, specific_settings) -> Optional[EffectivePolicy]:
    """Whole-record override, one level deep. None means notifications are off."""
    if specific_settings is not None:
        return _policy_from_row(specific_settings)
    if global_settings is not None:
        return _policy_from_row(global_settings)
    return None


def should_notify(policy: Optional[EffectivePolicy], event: NotificationEvent) -> bool:
    if policy is None or not policy.enabled:
        return False
    if not policy.channels:
        return False
    return bool(getattr(policy, _EVENT_FLAGS[event]))


def crossed_threshold(
    previous: Optional[float], current: Optional[float], threshold: float
) -> bool:
    """Rising edge: previous sample at or below the threshold, current above it.

    A missing previous sample counts as below.
    """
    if current is None or current <= threshold:
        return False
    return previous is None or previous <= threshold


def monitor_transition_event(previous_status: str, new_status: str) -> Optional[NotificationEvent]:
    """pending/up -> down is a down event, down -> up a recovery. Anything else is quiet."""
    if new_status == "down" and previous_status in ("pending", "up"):
        return NotificationEvent.DOWN
    if new_status == "up" and previous_status == "down":
        return NotificationEvent.RECOVERY
    return None
