"""Watch engine types.

Public types:
- PassNotification: One announced pass within an outbound batch
- NotificationSink: Delivers a batch of notifications to a channel
- CycleReport: What one poll cycle did
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol

from satwatch.predictions.types import SatellitePass
from satwatch.state.types import Window


@dataclass(frozen=True)
class PassNotification:
    """A newly predicted pass for one subscription."""

    subscription_id: str
    object_id: int
    object_name: str
    location_name: str
    locale: str
    satellite_pass: SatellitePass

    @property
    def window(self) -> Window:
        return self.satellite_pass.window

    @property
    def max_elevation(self) -> float:
        return self.satellite_pass.max_elevation


class NotificationSink(Protocol):
    """Outbound channel for pass notifications."""

    async def deliver(self, channel_id: str, batch: list[PassNotification]) -> None:
        """Deliver ``batch`` as a single message.

        Raises:
            DeliveryError: If the message could not be delivered. Sinks must
                not swallow failures; history is only recorded on success.
        """
        ...


@dataclass
class CycleReport:
    """Outcome of one poll cycle."""

    started_at: int
    checked: int = 0
    # subscription id -> windows delivered and recorded
    notified: dict[str, list[Window]] = field(default_factory=dict)
    missing_location: list[str] = field(default_factory=list)
    # subscription id -> error message
    fetch_failures: dict[str, str] = field(default_factory=dict)
    delivery_failures: dict[str, str] = field(default_factory=dict)
    pruned: int = 0

    @property
    def notifications_sent(self) -> int:
        return sum(len(windows) for windows in self.notified.values())

    @property
    def failed(self) -> int:
        return len(self.fetch_failures) + len(self.delivery_failures)

    def summary(self) -> str:
        parts = [
            f"checked {self.checked} watched satellite(s)",
            f"sent {self.notifications_sent} notification(s)",
        ]
        if self.missing_location:
            parts.append(f"skipped {len(self.missing_location)} with missing location")
        if self.failed:
            parts.append(f"{self.failed} failure(s)")
        return ", ".join(parts)
