"""
Event Broker
In-process publish/subscribe used to tell host plugins that SWF is available.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List

from app.core.logger import get_logger

logger = get_logger(__name__)

SWF_TOPIC = "swf"


@dataclass
class EventParams:
    topic: str
    event_payload: dict[str, Any] = field(default_factory=dict)
    published_at: datetime = field(default_factory=datetime.utcnow)


Subscriber = Callable[[EventParams], Awaitable[None]]


class EventBroker:
    """Delivers published events to every subscriber of the topic."""

    def __init__(self):
        self.subscribers: Dict[str, List[Subscriber]] = {}

    def subscribe(self, topic: str, subscriber: Subscriber) -> None:
        self.subscribers.setdefault(topic, []).append(subscriber)

    async def publish(self, event: EventParams) -> None:
        recipients = list(self.subscribers.get(event.topic, []))
        logger.info("Publishing event on topic %s to %s subscriber(s)", event.topic, len(recipients))
        for subscriber in recipients:
            try:
                await subscriber(event)
            except Exception:
                logger.exception("Subscriber failed handling topic %s", event.topic)
