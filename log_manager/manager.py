"""Rotation cycle orchestration: rotate every stream, then sweep old archives."""

import logging
import os
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from log_manager.config import ManagerConfig
from log_manager.errors import ConfigError, ErrorSink, RotationError, log_error, report
from log_manager.retention import sweep
from log_manager.rotator import RotationResult, archive_name, rotate
from log_manager.schedule import ScheduleTimer

logger = logging.getLogger(__name__)

# Only archives matching this glob are swept. Custom prefixes outside it are kept forever.
ARCHIVE_GLOB = "node-*.log"


@dataclass(frozen=True)
class RotationConfig:
    directory: str
    live_file: str
    archive_prefix: str

    @property
    def live_path(self) -> str:
        return os.path.join(self.directory, self.live_file)

    def archive_path(self, now: datetime) -> str:
        return os.path.join(self.directory, archive_name(self.archive_prefix, now))


@dataclass
class CycleReport:
    started_at: datetime
    rotations: list[RotationResult] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


class LogManager:
    def __init__(self, config: ManagerConfig, on_error: ErrorSink | None = None,
                 clock: Callable[[], datetime] | None = None):
        if not config.directory:
            raise ConfigError("log manager directory option is empty")
        self._config = config
        self._on_error = on_error or log_error
        try:
            tz = ZoneInfo(config.timezone) if config.timezone else None
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ConfigError(f"unknown timezone {config.timezone!r}") from exc
        self._clock = clock or (lambda: datetime.now(tz))
        self._rotations = [
            RotationConfig(config.directory, s.live_file, s.archive_prefix)
            for s in config.streams
        ]
        self._lock = threading.Lock()
        self._timer: ScheduleTimer | None = None

    @property
    def rotations(self) -> list[RotationConfig]:
        return list(self._rotations)

    @property
    def next_run_time(self) -> datetime | None:
        return self._timer.next_fire_time if self._timer else None

    def run_cycle(self) -> CycleReport:
        """Rotate every configured stream, then run one retention sweep."""
        with self._lock:
            now = self._clock()
            cycle = CycleReport(started_at=now)
            for rotation in self._rotations:
                result = self._rotate_one(rotation, now)
                if result is not None:
                    cycle.rotations.append(result)

            policy = self._config.retention
            cycle.deleted = sweep(
                self._config.directory,
                ARCHIVE_GLOB,
                policy.max_age_days,
                now=now,
                on_error=self._on_error,
                count_gate=policy.count_gate,
            )
            logger.info(
                "Cycle done: %d/%d stream(s) archived, %d archive(s) purged",
                sum(1 for r in cycle.rotations if r.copied), len(self._rotations),
                len(cycle.deleted),
            )
            return cycle

    def _rotate_one(self, rotation: RotationConfig, now: datetime) -> RotationResult | None:
        try:
            return rotate(rotation.live_path, rotation.archive_path(now), self._on_error)
        except Exception as exc:
            report(self._on_error, RotationError(
                f"rotation of {rotation.live_path} failed: {exc}", path=rotation.live_path), exc)
            return None

    def _run_scheduled(self) -> None:
        try:
            self.run_cycle()
        except Exception as exc:
            self._on_error(exc)

    def start(self) -> None:
        """Arm the schedule. Cycles run on a background thread until stop()."""
        if self._timer is not None:
            return
        self._timer = ScheduleTimer(self._config.schedule, self._run_scheduled,
                                    timezone=self._config.timezone)
        self._timer.start()
        logger.info("Managing %d stream(s) in %s", len(self._rotations), self._config.directory)

    def stop(self, wait: bool = True) -> None:
        if self._timer is None:
            return
        self._timer.shutdown(wait=wait)
        self._timer = None
