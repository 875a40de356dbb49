# contentwatch

A set of small HTTP services that take in user content, moderate it,
store it and hand it to human reviewers.

| Command                  | Module                  | What it runs                                         | Port |
|--------------------------|-------------------------|------------------------------------------------------|------|
| `contentwatch-gateway`   | `contentwatch.gateway`  | API gateway: forwards `/api/...` to other services   | `PORT`, default 8000 |
| `contentwatch-upload`    | `contentwatch.upload`   | Accepts files and text, publishes moderation events  | `PORT`, default 5002 |
| `contentwatch-storage`   | `contentwatch.storage`  | Saves files to disk and records them in a database   | `PORT`, default 5003 |
| `contentwatch-review`    | `contentwatch.review`   | Queue of items waiting for a human decision          | 5004 (fixed) |
| `contentwatch-analysis`  | `contentwatch.consumer` | Reads moderation events from a Redis stream          | –    |

## Installing

```
pip install .
pip install ".[test]"   # with the test dependencies
```

The storage service builds a `postgresql://` URL for SQLAlchemy; a
PostgreSQL driver that SQLAlchemy can use must be installed separately.

## Configuration

`contentwatch.config.load_settings(env_file, config_dir)` reads a `.env`
file and, when a directory is given, a `config.yaml` (or `config.yml`) in it
on top; nested YAML keys are flattened to dotted, lower-case names.
`Settings.get(key, default)` looks the key up case-insensitively, and a
non-empty environment variable named by the upper-cased key wins over
both files. `Settings.require(key)` does the same and logs a warning when
the value is empty.

What each command reads:

- gateway: `--env-file` (default `.env`) and `--config-dir` (default `configs`).
- upload: `--env-file` (default `.env`) and `--config-dir` (default `configs`).
- storage and analysis: `--env-file` (default `.env`) only.
- review: no configuration.

Settings used:

- `PORT` – port of the gateway, upload and storage services.
- `BROKER_URL` – Redis address as `host:port` (default `localhost:6379`).
- `TOPIC_NAME` – name of the Redis stream carrying moderation events.
- `UPLOAD_DIR` – where the upload service writes incoming files.
- `STORAGE_PATH` – where the storage service writes and reads files.
- `DB_HOST`, `DB_USER`, `DB_PASSWORD`, `DB_NAME`, `DB_PORT` – database
  connection of the storage service (`sslmode=disable` is added).
- `services.<name>` – base URL the gateway forwards to for `upload`,
  `storage` and `review`, normally set in `configs/config.yaml`:

```yaml
services:
  upload: http://localhost:5002
  storage: http://localhost:5003
  review: http://localhost:5004
```

## How it fits together

1. A client sends a multipart form to `/upload` on the upload service (any
   HTTP method; a non-multipart body gets 400): files under the field
   `files`, and optional plain text under the field `text`. Each file is
   saved in `UPLOAD_DIR` with a nanosecond timestamp prefix and classified
   by `detect_file_type` as `text`, `image`, `video` or `unknown`. The reply
   is `{"uploaded": [...names...]}`, or `{"uploaded": null}` when nothing
   was sent.
2. For every file, and for the text, `EventPublisher.publish` adds a
   `ModerationEvent` as JSON under the field `event` of the Redis stream.
3. The analysis service (`StreamConsumer`) creates the consumer group
   `moderation_group` if needed, reads up to five messages at a time, runs
   the matching moderation engine (on the text for text events, on the file
   path otherwise) and acknowledges a message only when moderation passes.
   Before each read it claims pending messages idle for more than 30
   seconds and processes them again.
4. Reviewers list `GET /review/pending` and decide with `POST /review/<id>`
   and a JSON body holding `status`, `comment` and `reviewed_by`; an
   unknown id gets 404.

The storage service accepts `POST /store` with a file under the form field
`file`, writes it to `STORAGE_PATH`, records its name, extension, path and
upload time, and serves `GET /files` (all records) and `GET /file/<id>`
(the file itself).

The gateway answers `GET /api/health` with `{"status": "ok"}` and forwards
`POST /api/upload` and any method under `/api/storage/...` and
`/api/review/...` to the service of the same name, and `/api/auth/...` to
the upload service, after stripping the leading `/api`. A service with no
URL configured gets 502 `Unknown service`. Every response carries
permissive CORS headers, `OPTIONS` requests get 204, and each request is
printed with its status, method, path and duration.

## Moderation rules

- Text is rejected if it contains a banned word (case-insensitive), is
  empty, or is longer than 5000 bytes in UTF-8.
- Images must end in `.jpg`, `.jpeg`, `.png` or `.gif`.
- Videos must end in `.mp4`, `.mov` or `.avi`.

```python
from contentwatch.moderation import ModerationError, get_moderation_engine
from contentwatch.upload import detect_file_type

kind = detect_file_type("holiday.JPG")        # "image"
engine = get_moderation_engine(kind)
engine.moderate("/uploads/holiday.JPG", "holiday.JPG")   # passes

try:
    get_moderation_engine("text").moderate("this is spam", "note")
except ModerationError as exc:
    print(exc)   # text contains banned word: spam
```

An unsupported content type passed to `get_moderation_engine` raises
`ModerationError` as well.

## Middleware

`contentwatch.middleware` holds pieces for Flask apps:

- `require_auth(secret)` – view decorator that needs an
  `Authorization: Bearer <jwt>` header signed with HMAC; failures get 401.
  `check_authorization(header, secret)` does the same check and returns the
  claims or raises `AuthError`.
- `rate_limited(limiter)` with `VisitorLimiter(rate, burst)` – one
  `TokenBucket` per client address (1 request per second, bursts of 3 by
  default); refusals get 429.
- `install_cors(app)` and `install_request_logger(app, emit)`.

`contentwatch.gateway` also offers `strip_api_prefix`, `load_service_map`
(reads `SERVICE_AUTH_URL` and `SERVICE_UPLOAD_URL`) and `save_uploads`.

## What it does not do

- There is no authentication service: `/api/auth/...` is forwarded to the
  upload service, and the gateway does not apply `require_auth` or
  `rate_limited` to any route.
- Moderation is rule-based only: image and video files are judged by their
  extension, not by what they contain.
- The review queue lives in memory, starts with two sample items and is lost
  when the service stops; nothing feeds moderation results into it.

## Running the tests

```
pytest
```