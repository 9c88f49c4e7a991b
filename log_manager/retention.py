"""Age-based deletion of dated archive files."""

import fnmatch
import logging
import os
import re
from datetime import datetime

from log_manager.errors import ErrorSink, RetentionError, log_error, report
from log_manager.schedule import localize

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")
DATE_FORMAT = "%Y-%m-%d"
SECONDS_PER_DAY = 86400


def extract_date(filename: str) -> datetime | None:
    """Local midnight of the first ``YYYY-MM-DD`` in the basename, or None.

    Only the first match is considered; if it is not a real calendar date the
    file counts as undated.
    """
    match = DATE_PATTERN.search(os.path.basename(filename))
    if match is None:
        return None
    try:
        return datetime.strptime(match.group(0), DATE_FORMAT)
    except ValueError:
        return None


def list_archives(directory: str, pattern: str) -> list[str]:
    """Sorted paths of regular files in *directory* whose names match *pattern*."""
    paths = []
    for name in sorted(fnmatch.filter(os.listdir(directory), pattern)):
        path = os.path.join(directory, name)
        if os.path.isfile(path):
            paths.append(path)
    return paths


def sweep(directory: str, pattern: str, max_age_days: int, now: datetime | None = None,
          on_error: ErrorSink = log_error, count_gate: int | None = None) -> list[str]:
    """Delete archives dated before ``now`` minus *max_age_days* days. Returns deleted paths.

    Days are fixed 86400-second spans. A file's date counts from its local
    midnight, in ``now``'s timezone when *now* is aware, and the file goes
    only when that instant is strictly earlier than the cutoff.
    With *count_gate* set, nothing is deleted while the number of matching
    files is at most *count_gate*. Files without a parseable date are never
    deleted.
    """
    if now is None:
        now = datetime.now()

    try:
        files = list_archives(directory, pattern)
    except OSError as exc:
        report(on_error, RetentionError(f"failed to list {directory}: {exc}", path=directory), exc)
        return []

    if count_gate is not None and len(files) <= count_gate:
        logger.debug("%d archive(s) in %s, at or under gate of %d; skipping sweep",
                     len(files), directory, count_gate)
        return []

    # Fixed-length days, so the window shifts by an hour across a DST change.
    cutoff_ts = now.timestamp() - max_age_days * SECONDS_PER_DAY
    deleted = []
    for path in files:
        archived_on = extract_date(path)
        if archived_on is None:
            logger.debug("No date in %s, keeping", path)
            continue
        if localize(archived_on, now.tzinfo).timestamp() >= cutoff_ts:
            continue
        try:
            os.remove(path)
        except OSError as exc:
            report(on_error, RetentionError(f"failed to delete {path}: {exc}", path=path), exc)
            continue
        deleted.append(path)

    if deleted:
        logger.info("Purged %d archive(s) older than %s", len(deleted),
                    datetime.fromtimestamp(cutoff_ts, now.tzinfo).isoformat(timespec="seconds"))
    return deleted
