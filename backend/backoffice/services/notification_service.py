# Overview: Best-effort real-time event fan-out for POS terminals and stock dashboards.

"""
Event Notifier

Delivery is at-most-once and strictly post-commit: the orchestrator only
publishes after the unit of work is durable, and a publish failure is
logged by the caller, never surfaced to the client.

- ChannelBroadcaster: in-process pub/sub. Each subscriber owns a bounded
  queue; publish() never blocks, a full queue drops the event for that
  subscriber only.
- NullNotifier: discards everything (CLI, tests, notifications disabled).

The Flask app stores the active notifier in
app.extensions[NOTIFIER_EXTENSION_KEY]; services receive it as an argument.
"""

from __future__ import annotations

import itertools
import queue
import threading
from dataclasses import dataclass, field

from flask import current_app

from ..extensions import NOTIFIER_EXTENSION_KEY
from ..time_utils import to_utc_z, utcnow

CHANNEL_INVENTORY = "inventory"
CHANNEL_POS = "point-of-sale"

VALID_CHANNELS = (CHANNEL_INVENTORY, CHANNEL_POS)

EVENT_INVENTORY_UPDATED = "inventory-updated"
EVENT_TRANSACTION_COMPLETED = "transaction-completed"
EVENT_TRANSACTION_VOIDED = "transaction-voided"
EVENT_PAYMENT_ADDED = "payment-added"

_event_ids = itertools.count(1)


@dataclass(frozen=True)
class ChannelEvent:
    channel: str
    event: str
    payload: dict
    event_id: int = field(default_factory=lambda: next(_event_ids))
    published_at: str = field(default_factory=lambda: to_utc_z(utcnow()))

    def to_dict(self) -> dict:
        return {
            "id": self.event_id,
            "channel": self.channel,
            "event": self.event,
            "published_at": self.published_at,
            "payload": self.payload,
        }


class EventNotifier:
    """Publishing interface used by the orchestrator."""

    def publish(self, channel: str, event: str, payload: dict) -> None:
        raise NotImplementedError


class NullNotifier(EventNotifier):
    def publish(self, channel: str, event: str, payload: dict) -> None:
        return None


class Subscription:
    """One listener on one channel. Iterate with get()."""

    def __init__(self, broadcaster: "ChannelBroadcaster", channel: str, maxsize: int):
        self.broadcaster = broadcaster
        self.channel = channel
        self.queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0

    def offer(self, event: ChannelEvent) -> bool:
        try:
            self.queue.put_nowait(event)
            return True
        except queue.Full:
            self.dropped += 1
            return False

    def get(self, timeout: float | None = None) -> ChannelEvent | None:
        """Next event, or None when nothing arrived within timeout."""
        try:
            return self.queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def close(self) -> None:
        self.broadcaster.unsubscribe(self)


class ChannelBroadcaster(EventNotifier):
    """Thread-safe in-process channel fan-out."""

    def __init__(self, *, queue_size: int = 256):
        self.queue_size = queue_size
        self._lock = threading.Lock()
        self._subscribers: dict[str, list[Subscription]] = {}

    def subscribe(self, channel: str) -> Subscription:
        if channel not in VALID_CHANNELS:
            raise ValueError(f"Unknown channel {channel}")
        subscription = Subscription(self, channel, self.queue_size)
        with self._lock:
            self._subscribers.setdefault(channel, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            members = self._subscribers.get(subscription.channel, [])
            if subscription in members:
                members.remove(subscription)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))

    def publish(self, channel: str, event: str, payload: dict) -> int:
        """Fan out to current subscribers. Returns how many accepted the event."""
        message = ChannelEvent(channel=channel, event=event, payload=payload)
        with self._lock:
            members = list(self._subscribers.get(channel, []))
        return sum(1 for subscription in members if subscription.offer(message))


def get_notifier() -> EventNotifier:
    notifier = current_app.extensions.get(NOTIFIER_EXTENSION_KEY)
    if notifier is None:
        return NullNotifier()
    return notifier
