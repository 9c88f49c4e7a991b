"""Copy-then-truncate rotation of a live log file into a dated archive."""

import logging
import shutil
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from log_manager.errors import ErrorSink, RotationError, log_error, report

logger = logging.getLogger(__name__)

ARCHIVE_DATE_FORMAT = "%Y-%m-%d"
ARCHIVE_SUFFIX = ".log"
COPY_CHUNK_SIZE = 64 * 1024


@dataclass
class RotationResult:
    live_path: str
    archive_path: str
    bytes_copied: int = 0
    copied: bool = False
    truncated: bool = False


def previous_day(now: datetime) -> date:
    """Calendar day before *now*'s local date (not *now* minus 24 hours)."""
    return now.date() - timedelta(days=1)


def archive_name(prefix: str, now: datetime) -> str:
    """Archive filename for a rotation running at *now*, e.g. ``node-out-2023-06-14.log``."""
    return prefix + previous_day(now).strftime(ARCHIVE_DATE_FORMAT) + ARCHIVE_SUFFIX


def rotate(live_path: str, archive_path: str, on_error: ErrorSink = log_error) -> RotationResult:
    """Stream *live_path* into *archive_path*, then empty *live_path*.

    The archive is created (or truncated) before the live file is opened, so
    it exists even when the copy fails. The live file is truncated once the
    copy attempt ends, whatever its outcome; a missing live file is recreated
    empty. Writers appending between the end of the copy and the truncation
    lose those bytes.

    Failures are wrapped in RotationError and sent to *on_error*; nothing is
    raised to the caller.
    """
    result = RotationResult(live_path=live_path, archive_path=archive_path)

    try:
        with open(archive_path, "wb") as dest:
            with open(live_path, "rb") as src:
                shutil.copyfileobj(src, dest, COPY_CHUNK_SIZE)
            result.bytes_copied = dest.tell()
        result.copied = True
        logger.info("Archived %s -> %s (%d bytes)", live_path, archive_path, result.bytes_copied)
    except OSError as exc:
        report(on_error, RotationError(
            f"failed to copy {live_path} to {archive_path}: {exc}", path=live_path), exc)

    try:
        with open(live_path, "wb"):
            pass
        result.truncated = True
        logger.debug("Truncated %s", live_path)
    except OSError as exc:
        report(on_error, RotationError(f"failed to truncate {live_path}: {exc}", path=live_path), exc)

    return result
