"""
Security Utilities
==================

Output-path containment, prompt cleanup, and secret redaction.

Backends only ever write files they name themselves, but the names are
built from caller-influenced prefixes, so every path is checked against
the output directory before the first byte is written.
"""

import re
import logging
import unicodedata
from pathlib import Path
from typing import Iterable, Optional, Union

from .exceptions import SecurityError

logger = logging.getLogger(__name__)


VIDEO_EXTENSIONS = frozenset({".mp4", ".webm", ".mov"})

_TRAVERSAL = re.compile(r"(\.\.[/\\])|(%2e%2e)|(%252e)|\x00", re.IGNORECASE)
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")

# (pattern, replacement) pairs for credentials the two backends use
_SECRET_PATTERNS = [
    (re.compile(r"Key\s+[A-Za-z0-9_\-:]{16,}"), "Key ***REDACTED***"),
    (re.compile(r"AIza[A-Za-z0-9_\-]{35}"), "AIza***REDACTED***"),
    (re.compile(r"([?&]key=)[^&\s]+"), r"\1***REDACTED***"),
    (re.compile(r"(GEMINI_API_KEY|FAL_KEY)=\S+"), r"\1=***REDACTED***"),
]


class PathValidator:
    """
    Keeps every generated file inside one output directory.

    Usage:
        validator = PathValidator("./output/videos")
        path = validator.validate_video("veo_base_20250101_120000.mp4")  # OK
        validator.validate("../elsewhere.mp4")  # Raises SecurityError
    """

    def __init__(
        self,
        base_path: Union[str, Path],
        allowed_extensions: Optional[Iterable[str]] = None,
    ):
        self.base_path = Path(base_path).resolve()
        self.allowed_extensions = (
            frozenset(ext.lower() for ext in allowed_extensions) if allowed_extensions else None
        )

    def validate(self, path: Union[str, Path]) -> Path:
        """
        Resolve a path against the base directory.

        Raises:
            SecurityError: traversal sequences, a target outside the base
                directory, or a disallowed extension
        """
        text = str(path)
        if _TRAVERSAL.search(text):
            logger.warning("Blocked path with traversal sequence")
            raise SecurityError(
                "Path contains a traversal sequence",
                attempted_path=text,
                security_type="path_traversal",
            )

        candidate = Path(path)
        resolved = (candidate if candidate.is_absolute() else self.base_path / candidate).resolve()

        if resolved != self.base_path and self.base_path not in resolved.parents:
            logger.warning(f"Blocked path outside {self.base_path}")
            raise SecurityError(
                "Path is outside the output directory",
                attempted_path=text,
                security_type="path_traversal",
            )

        suffix = resolved.suffix.lower()
        if self.allowed_extensions is not None and suffix not in self.allowed_extensions:
            raise SecurityError(
                f"File extension not allowed: {resolved.suffix}",
                attempted_path=text,
                security_type="invalid_extension",
            )

        return resolved

    def validate_video(self, path: Union[str, Path]) -> Path:
        """Validate a path that must name a video file."""
        resolved = self.validate(path)
        if resolved.suffix.lower() not in VIDEO_EXTENSIONS:
            raise SecurityError(
                f"Not a video extension: {resolved.suffix}",
                attempted_path=str(path),
                security_type="invalid_extension",
            )
        return resolved


def sanitize_filename(filename: str, max_length: int = 255) -> str:
    """
    Reduce a string to a portable filename fragment.

    Runs of anything other than ASCII letters, digits, ``.``, ``_`` and
    ``-`` collapse to a single underscore.
    """
    ascii_name = unicodedata.normalize("NFKD", filename or "").encode("ascii", "ignore").decode()
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", ascii_name).strip("._-")

    if len(cleaned) > max_length:
        stem, dot, ext = cleaned.rpartition(".")
        if dot and len(ext) < 10:
            cleaned = stem[:max_length - len(ext) - 1] + "." + ext
        else:
            cleaned = cleaned[:max_length]

    return cleaned or "unnamed"


def sanitize_prompt(prompt: str, max_length: int = 2000) -> str:
    """Drop non-printable characters (newlines and tabs survive) and cap length."""
    if not prompt:
        return ""

    cleaned = "".join(ch for ch in prompt if ch in "\n\t" or ch.isprintable())
    if len(cleaned) > max_length:
        logger.warning(f"Prompt truncated from {len(cleaned)} to {max_length} characters")
        cleaned = cleaned[:max_length]

    return cleaned.strip()


def redact_api_key(text: str) -> str:
    """Mask Gemini and fal.ai credentials before text reaches a log or exception."""
    if not text:
        return text

    for pattern, replacement in _SECRET_PATTERNS:
        text = pattern.sub(replacement, text)
    return text
