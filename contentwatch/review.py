"""Manual review service: a queue of content items awaiting a decision."""

from __future__ import annotations

import argparse
import json
import threading
from dataclasses import dataclass, field

from flask import Flask, jsonify, request


@dataclass
class ReviewItem:
    """One piece of content; status is "pending", "approved" or "rejected"."""

    id: str
    type: str
    url: str
    status: str = "pending"
    reviewed_by: str = ""
    comment: str = ""

    def to_dict(self) -> dict[str, str]:
        """Return the JSON form, leaving out an empty reviewer and comment."""
        data = {"id": self.id, "type": self.type, "url": self.url, "status": self.status}
        data.update({k: v for k, v in (("reviewed_by", self.reviewed_by),
                                       ("comment", self.comment)) if v})
        return data


def _default_items() -> list[ReviewItem]:
    return [
        ReviewItem("1", "image", "http://cdn.com/image1.jpg"),
        ReviewItem("2", "text", "http://cdn.com/text1.txt"),
    ]


@dataclass
class ReviewQueue:
    """An in-memory list of review items, safe to share between threads."""

    items: list[ReviewItem] = field(default_factory=_default_items)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def pending(self) -> list[ReviewItem]:
        """Return the items still waiting for review, in queue order."""
        with self._lock:
            return [item for item in self.items if item.status == "pending"]

    def review(self, item_id: str, status: str, comment: str = "",
               reviewed_by: str = "") -> ReviewItem:
        """Record a decision on ``item_id``; raises KeyError if it is unknown."""
        with self._lock:
            for item in self.items:
                if item.id == item_id:
                    item.status, item.reviewed_by, item.comment = status, reviewed_by, comment
                    return item
        raise KeyError(item_id)


def _parse_input(raw: bytes) -> dict[str, str]:
    if not raw.strip():
        raise ValueError("EOF")
    decoded = json.loads(raw) or {}
    if not isinstance(decoded, dict):
        raise ValueError("request body must be a JSON object")
    values = {name: decoded.get(name) or "" for name in ("status", "comment", "reviewed_by")}
    if not all(isinstance(value, str) for value in values.values()):
        raise ValueError("review fields must be strings")
    return values


def create_app(queue: ReviewQueue | None = None) -> Flask:
    """Build the review application around ``queue`` (a seeded queue by default)."""
    queue = queue if queue is not None else ReviewQueue()
    app = Flask(__name__)

    @app.get("/review/pending")
    def list_pending():
        return jsonify([item.to_dict() for item in queue.pending()] or None)

    @app.post("/review/<item_id>")
    def review_content(item_id: str):
        try:
            values = _parse_input(request.get_data())
        except ValueError as exc:
            return jsonify(error=str(exc)), 400
        try:
            item = queue.review(item_id, values["status"], values["comment"],
                                values["reviewed_by"])
        except KeyError:
            return jsonify(error="content not found"), 404
        return jsonify(item.to_dict())

    return app


def main(argv: list[str] | None = None) -> int:
    """Run the review service."""
    argparse.ArgumentParser(prog="contentwatch-review").parse_args(argv)
    create_app().run(host="0.0.0.0", port=5004)
    return 0