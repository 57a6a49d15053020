"""
Upload type checks.

Two gates, in order:
1. the filename extension must be on a fixed allowlist
2. the first 512 bytes, sniffed by libmagic, must match the MIME type that
   extension promises

This blocks casual extension spoofing. It is a heuristic, not a guarantee
that the payload is a well-formed media file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import magic

SNIFF_BYTES = 512

# Extension -> expected sniffed MIME type. Extend only by explicit change.
ALLOWED_MIME_BY_EXTENSION: dict[str, str] = {
    ".mp4": "video/mp4",
    ".mkv": "video/x-matroska",
    ".webm": "video/webm",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".mp3": "audio/mpeg",
    ".ogg": "audio/ogg",
    ".avif": "image/avif",
}

ALLOWED_EXTENSIONS = frozenset(ALLOWED_MIME_BY_EXTENSION)

logger = logging.getLogger(__name__)


class MimeRejected(ValueError):
    pass


class UnsupportedType(MimeRejected):
    def __init__(self, extension: str) -> None:
        super().__init__(
            f"Unsupported file type '{extension or '(none)'}'. Allowed: {sorted(ALLOWED_EXTENSIONS)}"
        )
        self.extension = extension


class MimeMismatch(MimeRejected):
    def __init__(self, *, detected_type: str, expected_type: str) -> None:
        super().__init__(f"mimetype {detected_type} does not match expected {expected_type}")
        self.detected_type = detected_type
        self.expected_type = expected_type


@dataclass(frozen=True)
class MimeDecision:
    ok: bool
    extension: str
    detected_type: str | None
    expected_type: str | None


def sniff(head: bytes) -> str:
    """
    Content type of a byte prefix; only the first 512 bytes are looked at.
    """
    sample = bytes(head[:SNIFF_BYTES])
    if not sample:
        return "application/x-empty"
    return str(magic.from_buffer(sample, mime=True))


def check(filename: str | None, head: bytes) -> MimeDecision:
    """
    Evaluate an upload without raising.

    `detected_type` stays None when the extension is rejected, since the
    content is never inspected in that case.
    """
    ext = Path(filename or "").suffix.lower()
    expected = ALLOWED_MIME_BY_EXTENSION.get(ext)
    if expected is None:
        return MimeDecision(ok=False, extension=ext, detected_type=None, expected_type=None)

    detected = sniff(head)
    return MimeDecision(
        ok=detected == expected,
        extension=ext,
        detected_type=detected,
        expected_type=expected,
    )


def validate(filename: str | None, head: bytes) -> MimeDecision:
    """
    Like `check`, but raises `UnsupportedType` / `MimeMismatch` on rejection.
    """
    decision = check(filename, head)
    if decision.ok:
        return decision

    if decision.expected_type is None:
        logger.info("upload_rejected reason=unsupported_type filename=%r", filename)
        raise UnsupportedType(decision.extension)

    logger.info(
        "upload_rejected reason=mime_mismatch filename=%r detected=%s expected=%s",
        filename,
        decision.detected_type,
        decision.expected_type,
    )
    raise MimeMismatch(
        detected_type=decision.detected_type or "",
        expected_type=decision.expected_type,
    )
