"""Gateway middleware: JWT auth, CORS, request logging and per-client rate limits."""

from __future__ import annotations

import functools
import threading
import time
from collections.abc import Callable
from typing import Any

import jwt
from flask import Flask, Response, g, jsonify, request

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Origin, Content-Type, Authorization",
    "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
}
_BEARER = "Bearer "


class AuthError(Exception):
    """The request carries no usable bearer token."""


def check_authorization(header: str | None, secret: str | bytes) -> dict[str, Any]:
    """Validate a "Bearer <jwt>" header against ``secret`` and return the claims."""
    if not header or not header.startswith(_BEARER):
        raise AuthError("Missing or invalid authorization header")
    try:
        return jwt.decode(header[len(_BEARER):], secret,
                          algorithms=["HS256", "HS384", "HS512"],
                          options={"verify_iat": False})
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token") from exc


class TokenBucket:
    """Allows ``rate`` events per second with bursts of up to ``burst``."""

    def __init__(self, rate: float, burst: int,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.rate = float(rate)
        self.burst = int(burst)
        self._clock = clock
        self._tokens = float(self.burst)
        self._last = clock()
        self._lock = threading.Lock()

    def allow(self) -> bool:
        """Take one token if available."""
        with self._lock:
            now = self._clock()
            self._tokens = min(float(self.burst),
                               self._tokens + max(0.0, now - self._last) * self.rate)
            self._last = now
            if self._tokens < 1.0:
                return False
            self._tokens -= 1.0
            return True


class VisitorLimiter:
    """One token bucket per client address."""

    def __init__(self, rate: float = 1.0, burst: int = 3,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.rate = rate
        self.burst = burst
        self._clock = clock
        self._visitors: dict[str, TokenBucket] = {}
        self._lock = threading.Lock()

    def allow(self, ip: str) -> bool:
        """Report whether ``ip`` may make another request now."""
        with self._lock:
            bucket = self._visitors.get(ip)
            if bucket is None:
                bucket = self._visitors[ip] = TokenBucket(self.rate, self.burst, self._clock)
        return bucket.allow()


def _client_ip() -> str:
    first = request.headers.get("X-Forwarded-For", "").split(",")[0].strip()
    return first or request.headers.get("X-Real-IP", "").strip() or request.remote_addr or ""


def install_cors(app: Flask) -> None:
    """Add permissive CORS headers and answer every OPTIONS request with 204."""

    @app.before_request
    def _preflight():
        return Response(status=204) if request.method == "OPTIONS" else None

    @app.after_request
    def _cors_headers(response: Response) -> Response:
        response.headers.update(CORS_HEADERS)
        return response


def _trim(value: float, digits: int) -> str:
    return f"{value:.{digits}f}".rstrip("0").rstrip(".")


def _format_duration(seconds: float) -> str:
    ns = int(round(seconds * 1e9))
    if ns <= 0:
        return "0s"
    for limit, scale, digits, unit in ((1_000, 1, 0, "ns"), (1_000_000, 1e3, 3, "µs"),
                                       (1_000_000_000, 1e6, 6, "ms")):
        if ns < limit:
            return _trim(ns / scale, digits) + unit
    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    text = f"{hours}h" if hours else ""
    if hours or minutes:
        text += f"{minutes}m"
    return text + _trim(rest / 1e9, 9) + "s"


def _print_record(record: dict[str, Any]) -> None:
    print("map[" + " ".join(f"{key}:{record[key]}" for key in sorted(record)) + "]")


def install_request_logger(app: Flask,
                           emit: Callable[[dict[str, Any]], None] | None = None) -> None:
    """Report status, method, path and duration of each request to ``emit``."""
    emit = emit or _print_record

    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response: Response) -> Response:
        start = g.pop("request_started", None)
        elapsed = time.perf_counter() - start if start is not None else 0.0
        emit({"status": response.status_code, "method": request.method,
              "path": request.path, "duration": _format_duration(elapsed)})
        return response


def _guard(check: Callable[[], Any]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorate(view: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            refusal = check()
            return refusal if refusal is not None else view(*args, **kwargs)

        return wrapper

    return decorate


def require_auth(secret: str | bytes) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a view so that it needs a valid bearer token; the claims go to g."""

    def check():
        try:
            g.jwt_claims = check_authorization(request.headers.get("Authorization"), secret)
        except AuthError as exc:
            return jsonify(error=str(exc)), 401
        return None

    return _guard(check)


def rate_limited(limiter: VisitorLimiter) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorate a view so that each client is held to ``limiter``."""

    def check():
        return None if limiter.allow(_client_ip()) else (jsonify(error="Too many requests"), 429)

    return _guard(check)