"""API gateway: health check and reverse proxying to the backend services."""

from __future__ import annotations

import argparse
import logging
import os
from collections.abc import Iterable
from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import requests
from flask import Flask, Response, jsonify, request

from contentwatch.config import Settings, load_settings
from contentwatch.middleware import install_cors, install_request_logger
from contentwatch.upload import _ANY_METHODS

log = logging.getLogger(__name__)

_HOP_BY_HOP = frozenset({
    "connection", "keep-alive", "proxy-connection", "proxy-authenticate",
    "proxy-authorization", "te", "trailer", "transfer-encoding", "upgrade",
})
_PATH_SAFE = "/:@!$&'()*+,;=-._~"


def strip_api_prefix(path: str) -> str:
    """Remove a leading "/api"; an empty result becomes "/"."""
    return (path[len("/api"):] if path.startswith("/api") else path) or "/"


def load_service_map(settings: Settings) -> dict[str, str]:
    """Return the known service base URLs keyed by service name."""
    return {
        "auth": settings.get("SERVICE_AUTH_URL"),
        "upload": settings.get("SERVICE_UPLOAD_URL"),
    }


def save_uploads(files: Iterable[Any], dest_dir: str) -> list[str]:
    """Save each uploaded file under ``dest_dir`` and return the paths written."""
    saved: list[str] = []
    for storage in files:
        name = (storage.filename or "").replace("\\", "/").rsplit("/", 1)[-1]
        if not name:
            continue
        destination = os.path.join(dest_dir, name)
        os.makedirs(os.path.dirname(destination) or ".", exist_ok=True)
        storage.save(destination)
        saved.append(destination)
    return saved


def _upstream_url(target, path: str, query: str) -> str:
    base = target.path
    if base.endswith("/") and path.startswith("/"):
        joined = base + path[1:]
    elif not base.endswith("/") and not path.startswith("/"):
        joined = base + "/" + path
    else:
        joined = base + path
    merged = "&".join(part for part in (target.query, query) if part)
    return urlunsplit((target.scheme, target.netloc, quote(joined, safe=_PATH_SAFE), merged, ""))


def _forward_headers() -> dict[str, str]:
    headers = {key: value for key, value in request.headers.items()
               if key.lower() not in _HOP_BY_HOP | {"host", "content-length"}}
    client = request.remote_addr
    if client:
        prior = request.headers.get("X-Forwarded-For")
        headers["X-Forwarded-For"] = f"{prior}, {client}" if prior else client
    return headers


def _make_proxy(settings: Settings, session: Any, service: str):
    def proxy(**_params: Any):
        target = settings.get(f"services.{service}")
        if not target:
            return jsonify(error="Unknown service"), 502
        try:
            remote = urlsplit(target)
        except ValueError:
            remote = None
        if remote is None or not remote.scheme or not remote.netloc:
            return jsonify(error="Invalid service URL"), 500

        url = _upstream_url(remote, strip_api_prefix(request.path),
                            request.query_string.decode("latin-1"))
        try:
            upstream = session.request(request.method, url, headers=_forward_headers(),
                                       data=request.get_data(), allow_redirects=False)
        except requests.RequestException as exc:
            log.error("proxy error: %s", exc)
            return Response(status=502)

        headers = [(key, value) for key, value in upstream.headers.items()
                   if key.lower() not in _HOP_BY_HOP | {"content-length", "content-encoding"}]
        return Response(upstream.content, status=upstream.status_code, headers=headers)

    proxy.__name__ = f"proxy_{service}"
    return proxy


def create_app(settings: Settings, session: Any = None) -> Flask:
    """Build the gateway; upstream calls go through ``session`` (requests.Session)."""
    session = session if session is not None else requests.Session()
    app = Flask(__name__)
    install_request_logger(app)
    install_cors(app)

    @app.get("/api/health")
    def health():
        return jsonify(status="ok")

    for prefix, service in (("auth", "upload"), ("storage", "storage"), ("review", "review")):
        view = _make_proxy(settings, session, service)
        options = {"methods": _ANY_METHODS, "provide_automatic_options": False}
        app.add_url_rule(f"/api/{prefix}/", f"{prefix}_root", view, **options)
        app.add_url_rule(f"/api/{prefix}/<path:subpath>", f"{prefix}_path", view, **options)

    app.add_url_rule("/api/upload", "upload", _make_proxy(settings, session, "upload"),
                     methods=["POST"])
    return app


def main(argv: list[str] | None = None) -> int:
    """Run the API gateway."""
    parser = argparse.ArgumentParser(prog="contentwatch-gateway")
    parser.add_argument("--env-file", default=".env", help="path of the .env file")
    parser.add_argument("--config-dir", default="configs", help="directory holding config.yaml")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    settings = load_settings(args.env_file, args.config_dir)
    port = settings.get("PORT") or "8000"
    log.info("API Gateway running on port %s", port)
    create_app(settings).run(host="0.0.0.0", port=int(port))
    return 0