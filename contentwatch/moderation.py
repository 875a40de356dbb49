"""Moderation engines for text, image and video content."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

log = logging.getLogger(__name__)

BANNED_WORDS = (
    "badword",
    "hate",
    "spam",
    "violence",
    "abuse",
    "harassment",
    "bullying",
    "racism",
    "sexism",
    "discrimination",
)
MAX_TEXT_LENGTH = 5000
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi")


class ModerationError(Exception):
    """Content was rejected or could not be moderated."""


class ModerationEngine(ABC):
    """Checks one piece of content; raises ModerationError when it is rejected."""

    @abstractmethod
    def moderate(self, content: str, filename: str) -> None:
        """Check ``content`` (text or a file path) named ``filename``."""


class TextModerationEngine(ModerationEngine):
    """Rejects text holding a banned word, empty text and overly long text."""

    def moderate(self, content: str, filename: str) -> None:
        log.info("[TextModeration] Moderating text: %s", content)
        lowered = content.lower()
        for word in BANNED_WORDS:
            if word in lowered:
                raise ModerationError(f"text contains banned word: {word}")
        size = len(content.encode("utf-8"))
        if size == 0:
            raise ModerationError("text content is empty")
        if size > MAX_TEXT_LENGTH:
            raise ModerationError(
                f"text content exceeds maximum length of {MAX_TEXT_LENGTH} characters"
            )


class _ExtensionEngine(ModerationEngine):
    kind = ""
    label = ""
    extensions: tuple[str, ...] = ()

    def moderate(self, content: str, filename: str) -> None:
        log.info("[%sModeration] Moderating %s: %s", self.label, self.kind, filename)
        if not filename.lower().endswith(self.extensions):
            raise ModerationError(f"{self.kind} file type not allowed: {filename}")


class ImageModerationEngine(_ExtensionEngine):
    """Accepts only common image file extensions."""

    kind = "image"
    label = "Image"
    extensions = IMAGE_EXTENSIONS

    def moderate(self, content: str, filename: str) -> None:
        super().moderate(content, filename)


class VideoModerationEngine(_ExtensionEngine):
    """Accepts only common video file extensions."""

    kind = "video"
    label = "Video"
    extensions = VIDEO_EXTENSIONS

    def moderate(self, content: str, filename: str) -> None:
        super().moderate(content, filename)


_ENGINES: dict[str, type[ModerationEngine]] = {
    "text": TextModerationEngine,
    "image": ImageModerationEngine,
    "video": VideoModerationEngine,
}


def get_moderation_engine(content_type: str) -> ModerationEngine:
    """Return the engine for ``content_type``: "text", "image" or "video"."""
    try:
        return _ENGINES[content_type]()
    except KeyError:
        raise ModerationError(f"unsupported content type: {content_type}") from None