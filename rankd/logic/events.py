"""Domain event constants and publisher.

Defines event type constants and a simple publish() callable used by the
order store after each committed write.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List
import logging

logger = logging.getLogger(__name__)

COLLECTION_REORDERED = "collection.reordered"
ITEM_APPENDED = "collection.item_appended"
ITEM_REMOVED = "collection.item_removed"

# Only the most recent events are kept; older ones are dropped
EVENT_BUFFER_MAX = 256


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event.

    Events are logged and kept in a bounded in-memory buffer that tests read
    through get_buffered_events().
    """
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    EVENT_BUFFER.append({"type": event_type, "payload": payload})


EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_MAX)


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events, oldest first; optionally clear the buffer."""
    events = list(EVENT_BUFFER)
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "COLLECTION_REORDERED",
    "ITEM_APPENDED",
    "ITEM_REMOVED",
    "EVENT_BUFFER_MAX",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]
