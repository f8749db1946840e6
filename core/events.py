"""
Domain event publisher.

Events go to a kombu topic exchange with the event name as routing key.
Publishing is best-effort: failures are logged and reported through the
return value, never raised.
"""

import asyncio
import logging
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from kombu import Connection, Exchange

from core.config import settings
from core.utils.datetime import now

logger = logging.getLogger(__name__)


class EventPublisher:
    def __init__(
        self,
        url: Optional[str] = None,
        exchange_name: Optional[str] = None,
        enabled: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.url = url or settings.event_bus_url
        self.exchange = Exchange(
            exchange_name or settings.event_exchange, type="topic", durable=True
        )
        self.enabled = settings.events_enabled if enabled is None else enabled
        self.timeout = timeout or settings.event_publish_timeout

    async def publish(self, event_type: str, payload: dict[str, Any]) -> bool:
        """
        Publish one event.

        Args:
            event_type: Event name, used as routing key
            payload: JSON-serializable event data

        Returns:
            True if the broker accepted the message
        """
        if not self.enabled:
            logger.debug(f"Events disabled; dropping {event_type}")
            return False

        body = {
            "event_type": event_type,
            "occurred_at": now().isoformat(),
            "payload": jsonable(payload),
        }
        try:
            await asyncio.to_thread(self._publish_sync, event_type, body)
            logger.debug(f"Published event {event_type}")
            return True
        except Exception as e:
            logger.error(f"Failed to publish event {event_type}: {e}", exc_info=True)
            return False

    def _publish_sync(self, event_type: str, body: dict[str, Any]) -> None:
        with Connection(self.url, connect_timeout=self.timeout) as connection:
            producer = connection.Producer(serializer="json")
            producer.publish(
                body,
                exchange=self.exchange,
                routing_key=event_type,
                declare=[self.exchange],
                retry=False,
                timeout=self.timeout,
            )


def jsonable(value: Any) -> Any:
    """Render enums, dates and decimals, recursively, for event and audit JSON."""
    if isinstance(value, dict):
        return {key: jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [jsonable(item) for item in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


_publisher: Optional[EventPublisher] = None


def get_publisher() -> EventPublisher:
    """Process-wide publisher built from settings."""
    global _publisher
    if _publisher is None:
        _publisher = EventPublisher()
    return _publisher
