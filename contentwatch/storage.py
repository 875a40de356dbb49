"""Storage service: uploaded files on disk, their metadata in a database."""

import argparse
import logging
import os
import shutil
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, BinaryIO

from flask import Flask, jsonify, request, send_file
from sqlalchemy import DateTime, Integer, String, create_engine, select
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker

from contentwatch.config import load_settings

log = logging.getLogger(__name__)

_DB_KEYS = ("DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME", "DB_PORT")


def _base_name(filename: str) -> str:
    return filename.replace("\\", "/").rsplit("/", 1)[-1]


class _Base(DeclarativeBase):
    pass


class StoredContent(_Base):
    """Metadata of one stored file."""

    __tablename__ = "contents"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    file_name: Mapped[str] = mapped_column(String, default="")
    file_type: Mapped[str] = mapped_column(String, default="")
    path: Mapped[str] = mapped_column(String, default="")
    uploaded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict[str, Any]:
        """Return the JSON form, with the upload time in RFC 3339."""
        stamp = self.uploaded_at
        if stamp is not None and stamp.tzinfo is None:
            stamp = stamp.replace(tzinfo=timezone.utc)
        return {
            "id": self.id,
            "file_name": self.file_name,
            "file_type": self.file_type,
            "path": self.path,
            "uploaded_at": stamp.isoformat().replace("+00:00", "Z") if stamp else None,
        }


def save_file(filename: str, stream: BinaryIO, dest_dir: str) -> str:
    """Copy ``stream`` to ``dest_dir``/``filename`` and return the new path."""
    name = _base_name(filename)
    if not name:
        raise ValueError("file name is empty")
    if dest_dir:
        try:
            os.makedirs(dest_dir, mode=0o755, exist_ok=True)
        except OSError:
            pass
    destination = os.path.join(dest_dir, name)
    with open(destination, "wb") as target:
        shutil.copyfileobj(stream, target)
    return destination


def build_database_url(env: Mapping[str, str]) -> str:
    """Build a PostgreSQL URL from DB_HOST, DB_USER, DB_PASSWORD, DB_NAME, DB_PORT."""
    port = env.get("DB_PORT")
    url = URL.create(
        "postgresql",
        username=env.get("DB_USER") or None,
        password=env.get("DB_PASSWORD") or None,
        host=env.get("DB_HOST") or None,
        port=int(port) if port else None,
        database=env.get("DB_NAME") or None,
        query={"sslmode": "disable"},
    )
    return url.render_as_string(hide_password=False)


def init_db(url: str) -> sessionmaker:
    """Connect, create the schema, and return a session factory."""
    engine = create_engine(url)
    _Base.metadata.create_all(engine)
    log.info("Connected to the database and migrated schema.")
    return sessionmaker(bind=engine)


def create_app(session_factory: sessionmaker, storage_path: str) -> Flask:
    """Build the storage application."""
    app = Flask(__name__)

    @app.post("/store")
    def store():
        upload = request.files.get("file")
        name = _base_name(upload.filename or "") if upload is not None else ""
        if not name:
            return jsonify(error="No file uploaded"), 400
        try:
            saved = save_file(name, upload.stream, storage_path)
        except (OSError, ValueError) as exc:
            log.error("File saving error: %s", exc)
            return jsonify(error="Failed to save file"), 500
        content = StoredContent(file_name=name, file_type=os.path.splitext(name)[1],
                                path=saved, uploaded_at=datetime.now(timezone.utc))
        try:
            with session_factory() as session:
                session.add(content)
                session.commit()
                payload = content.to_dict()
        except SQLAlchemyError:
            return jsonify(error="Failed to save metadata"), 500
        return jsonify(message="Content stored successfully", content=payload)

    @app.get("/files")
    def list_files():
        try:
            with session_factory() as session:
                rows = session.scalars(select(StoredContent).order_by(StoredContent.id))
                contents = [row.to_dict() for row in rows]
        except SQLAlchemyError:
            return jsonify(error="Failed to fetch content"), 500
        return jsonify(contents)

    @app.get("/file/<file_id>")
    def get_file(file_id: str):
        try:
            with session_factory() as session:
                content = session.get(StoredContent, int(file_id))
                name = content.file_name if content is not None else None
        except (ValueError, SQLAlchemyError):
            name = None
        if name is None:
            return jsonify(error="File not found"), 404
        path = os.path.abspath(os.path.join(storage_path, name))
        if not os.path.isfile(path):
            return "404 page not found", 404, {"Content-Type": "text/plain; charset=utf-8"}
        return send_file(path)

    return app


def main(argv: list[str] | None = None) -> int:
    """Run the storage service."""
    parser = argparse.ArgumentParser(prog="contentwatch-storage")
    parser.add_argument("--env-file", default=".env", help="path of the .env file")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO)
    settings = load_settings(args.env_file, None)
    session_factory = init_db(build_database_url({k: settings.get(k) for k in _DB_KEYS}))
    app = create_app(session_factory, settings.get("STORAGE_PATH"))
    app.run(host="0.0.0.0", port=int(settings.get("PORT") or "5003"))
    return 0