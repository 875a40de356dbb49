"""Consumer that reads moderation events from a Redis stream group."""

from __future__ import annotations

import argparse
import logging
import time
from typing import Any

import redis

from contentwatch.config import load_settings
from contentwatch.events import ModerationEvent, _redis_from_address
from contentwatch.moderation import ModerationError, get_moderation_engine

log = logging.getLogger(__name__)

DEFAULT_GROUP = "moderation_group"
BATCH = 5
CLAIM_MIN_IDLE_MS = 30_000


def _text(value: Any) -> str | None:
    if isinstance(value, bytes):
        try:
            return value.decode("utf-8")
        except UnicodeDecodeError:
            return None
    return value if isinstance(value, str) else None


class StreamConsumer:
    """Reads, moderates and acknowledges events from one stream."""

    def __init__(self, client: Any, stream: str, group: str = DEFAULT_GROUP,
                 consumer_name: str | None = None) -> None:
        self.client = client
        self.stream = stream
        self.group = group
        self.consumer_name = consumer_name or f"consumer-{time.time_ns()}"

    def ensure_group(self) -> None:
        """Create the consumer group (and stream) unless it already exists."""
        try:
            self.client.xgroup_create(self.stream, self.group, id="$", mkstream=True)
        except redis.ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise

    def process_message(self, message_id: Any, fields: Any) -> bool:
        """Moderate one message; acknowledge it and return True if it passes."""
        label = _text(message_id) or repr(message_id)
        fields = fields or {}
        raw = _text(fields.get("event", fields.get(b"event")))
        if raw is None:
            log.warning("Invalid event format")
            return False
        try:
            event = ModerationEvent.from_json(raw)
            engine = get_moderation_engine(event.type)
        except (ValueError, ModerationError) as exc:
            log.warning("Error reading event: %s", exc)
            return False
        try:
            engine.moderate(event.content if event.type == "text" else event.path,
                            event.filename)
        except ModerationError as exc:
            log.warning("Moderation failed for message ID %s: %s", label, exc)
            return False
        try:
            self.client.xack(self.stream, self.group, message_id)
        except redis.RedisError as exc:
            log.error("Failed to ACK message: %s", exc)
            return False
        log.info("ACKed message ID: %s", label)
        return True

    def _process_all(self, messages: Any) -> int:
        return sum(self.process_message(mid, fields) for mid, fields in messages or [])

    def claim_pending(self) -> int:
        """Claim idle pending messages and process them; return how many were acked."""
        try:
            pending = self.client.xpending_range(
                self.stream, self.group, min="-", max="+", count=BATCH)
        except redis.RedisError as exc:
            log.error("Error checking pending: %s", exc)
            return 0
        acked = 0
        for entry in pending or []:
            try:
                claimed = self.client.xclaim(
                    self.stream, self.group, self.consumer_name,
                    min_idle_time=CLAIM_MIN_IDLE_MS, message_ids=[entry["message_id"]])
            except redis.RedisError as exc:
                log.error("Error claiming message: %s", exc)
                continue
            acked += self._process_all(claimed)
        return acked

    def poll(self) -> int:
        """Run one claim-and-read cycle; return how many messages were acked."""
        acked = self.claim_pending()
        try:
            response = self.client.xreadgroup(
                self.group, self.consumer_name, {self.stream: ">"}, count=BATCH, block=0)
        except redis.RedisError as exc:
            log.error("Error reading stream: %s", exc)
            return acked
        streams = response.items() if isinstance(response, dict) else response or []
        return acked + sum(self._process_all(messages) for _stream, messages in streams)

    def run(self) -> None:
        """Create the group if needed, then poll forever."""
        self.ensure_group()
        while True:
            self.poll()


def main(argv: list[str] | None = None) -> int:
    """Start the content moderation service."""
    parser = argparse.ArgumentParser(prog="contentwatch-analysis")
    parser.add_argument("--env-file", default=".env", help="path of the .env file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    settings = load_settings(args.env_file, None)
    log.info("Starting Content Moderation Service...")
    client = _redis_from_address(settings.require("BROKER_URL"))
    try:
        StreamConsumer(client, settings.require("TOPIC_NAME")).run()
    except KeyboardInterrupt:
        pass
    finally:
        client.close()
    return 0