"""HTTP service that accepts uploads and publishes moderation events."""

from __future__ import annotations

import argparse
import logging
import os
import time
from typing import Any

from flask import Flask, jsonify, request

from contentwatch.config import load_settings
from contentwatch.events import EventPublisher, _redis_from_address

log = logging.getLogger(__name__)

FILE_TYPES = {
    **dict.fromkeys([".txt"], "text"),
    **dict.fromkeys([".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp"], "image"),
    **dict.fromkeys([".mp4", ".avi", ".mov", ".mkv"], "video"),
}
_ANY_METHODS = ["GET", "POST", "PUT", "PATCH", "HEAD", "OPTIONS", "DELETE", "CONNECT", "TRACE"]


def detect_file_type(filename: str) -> str:
    """Classify a file as "text", "image", "video" or "unknown" by extension."""
    base = filename.rsplit("/", 1)[-1]
    dot = base.rfind(".")
    extension = base[dot:] if dot >= 0 else ""
    return FILE_TYPES.get(extension.lower(), "unknown")


def create_app(upload_dir: str, publisher: Any) -> Flask:
    """Build the upload application, saving files under ``upload_dir``."""
    app = Flask(__name__)

    @app.route("/upload", methods=_ANY_METHODS, provide_automatic_options=False)
    def upload():
        if request.mimetype != "multipart/form-data":
            return jsonify(error="invalid form data"), 400
        os.makedirs(upload_dir, exist_ok=True)

        uploaded: list[str] = []
        for storage in request.files.getlist("files"):
            original = (storage.filename or "").rstrip("/").rsplit("/", 1)[-1]
            if not original:
                continue
            filename = f"{time.time_ns()}_{original}"
            destination = os.path.join(upload_dir, filename)
            try:
                storage.save(destination)
            except OSError as exc:
                log.error("Saving %s failed: %s", destination, exc)
                return jsonify(error="upload failed"), 500
            publisher.publish(filename, destination, detect_file_type(original))
            uploaded.append(filename)

        raw_text = request.form.get("text", "")
        if raw_text:
            filename = f"text_{time.time_ns()}"
            publisher.publish(filename, "", "text", raw_text)
            uploaded.append(filename)

        return jsonify(uploaded=uploaded or None)

    return app


def main(argv: list[str] | None = None) -> int:
    """Run the upload service."""
    parser = argparse.ArgumentParser(prog="contentwatch-upload")
    parser.add_argument("--env-file", default=".env")
    parser.add_argument("--config-dir", default="configs")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    settings = load_settings(args.env_file, args.config_dir)
    client = _redis_from_address(settings.get("BROKER_URL"))
    app = create_app(settings.require("UPLOAD_DIR"),
                     EventPublisher(client, settings.get("TOPIC_NAME")))
    port = settings.require("PORT") or "5002"
    try:
        app.run(host="0.0.0.0", port=int(port))
    finally:
        client.close()
    return 0