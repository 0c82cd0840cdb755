"""In-process publish/subscribe for realtime session updates."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 256


def session_channel(session_id: UUID) -> str:
    """Channel carrying session row updates and vote inserts."""
    return f"session:{session_id}"


def presence_channel(session_id: UUID) -> str:
    """Channel carrying full presence state."""
    return f"presence:{session_id}"


@dataclass(frozen=True)
class RealtimeEvent:
    """A message pushed to channel subscribers."""

    channel: str
    kind: str
    payload: dict[str, Any]

    def to_message(self) -> dict[str, Any]:
        return {"type": self.kind, "channel": self.channel, "payload": self.payload}


@dataclass(eq=False)
class Subscription:
    """A subscriber's bounded inbox on one or more channels."""

    channels: tuple[str, ...]
    queue: asyncio.Queue[RealtimeEvent]
    loop: asyncio.AbstractEventLoop | None = None
    overflowed: bool = False
    closed: bool = False

    async def get(self) -> RealtimeEvent:
        return await self.queue.get()

    def _push(self, event: RealtimeEvent) -> bool:
        if self.closed:
            return False
        try:
            self.queue.put_nowait(event)
        except asyncio.QueueFull:
            self.overflowed = True
            self.closed = True
            return False
        return True


@dataclass
class RealtimeFanout:
    """Delivers every published event to all subscribers of its channel.

    Subscribers that fall behind are dropped and flagged ``overflowed`` so
    the consumer can re-sync from full state instead of trusting a gap.
    """

    queue_size: int = DEFAULT_QUEUE_SIZE
    _subscribers: dict[str, list[Subscription]] = field(default_factory=dict)

    def subscribe(self, *channels: str) -> Subscription:
        """Register a new subscriber sharing one inbox across channels."""
        if not channels:
            raise ValueError("subscribe needs at least one channel")
        try:
            loop: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        subscription = Subscription(
            channels=channels,
            queue=asyncio.Queue(maxsize=self.queue_size),
            loop=loop,
        )
        for channel in channels:
            self._subscribers.setdefault(channel, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove a subscriber; unknown subscriptions are ignored."""
        subscription.closed = True
        for channel in subscription.channels:
            subscribers = self._subscribers.get(channel, [])
            if subscription in subscribers:
                subscribers.remove(subscription)
            if not subscribers:
                self._subscribers.pop(channel, None)

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, []))

    def publish(self, event: RealtimeEvent) -> int:
        """Deliver an event and return how many subscribers accepted it."""
        try:
            running: asyncio.AbstractEventLoop | None = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        delivered = 0
        for subscription in list(self._subscribers.get(event.channel, [])):
            loop = subscription.loop
            if loop is not None and loop is not running and not loop.is_closed():
                loop.call_soon_threadsafe(subscription._push, event)
                delivered += 1
                continue
            if subscription._push(event):
                delivered += 1
            else:
                logger.warning(
                    "Dropping slow realtime subscriber",
                    extra={"channel": event.channel},
                )
                self.unsubscribe(subscription)
        return delivered
