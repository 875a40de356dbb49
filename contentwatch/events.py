"""Moderation events published to a Redis stream."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from typing import Any

import redis

log = logging.getLogger(__name__)


def _redis_from_address(address: str) -> redis.Redis:
    host, sep, port = (address or "localhost:6379").rpartition(":")
    if not sep:
        host, port = port, "6379"
    return redis.Redis(host=host or "localhost", port=int(port))


@dataclass
class ModerationEvent:
    """A request to moderate one uploaded file or piece of text."""

    filename: str = ""
    path: str = ""
    type: str = ""
    content: str = ""

    def to_json(self) -> str:
        """Encode as compact JSON, leaving out empty content."""
        payload = asdict(self)
        if not self.content:
            del payload["content"]
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))

    @classmethod
    def from_json(cls, data: str | bytes) -> ModerationEvent:
        """Decode an event; raises ValueError for malformed input."""
        decoded = json.loads(data)
        if not isinstance(decoded, dict):
            raise ValueError("moderation event must be a JSON object")
        values = {k: v for k, v in decoded.items() if k in cls.__dataclass_fields__ and v is not None}
        if not all(isinstance(v, str) for v in values.values()):
            raise ValueError("moderation event fields must be strings")
        return cls(**values)


class EventPublisher:
    """Appends moderation events to a Redis stream under the field "event"."""

    def __init__(self, client: Any, stream: str) -> None:
        self.client = client
        self.stream = stream

    def publish(self, filename: str, path: str, file_type: str,
                content: str | None = None) -> Any:
        """Publish one event; return the stream entry id, or None on failure."""
        event = ModerationEvent(filename, path, file_type, content or "")
        try:
            entry_id = self.client.xadd(self.stream, {"event": event.to_json().encode("utf-8")})
        except redis.RedisError as exc:
            log.error("Failed to publish event: %s", exc)
            return None
        log.info("Published event to stream for %s", filename)
        return entry_id