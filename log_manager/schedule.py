"""Wall-clock schedule evaluation and the repeating timer built on APScheduler."""

import logging
from dataclasses import dataclass
from datetime import datetime, time, timedelta
from typing import Callable

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.base import BaseTrigger

from log_manager.errors import ConfigError

logger = logging.getLogger(__name__)

JOB_ID = "log-rotation-cycle"


@dataclass(frozen=True)
class ScheduleSpec:
    """Set of (hour, minute) pairs at which rotation fires."""

    times: tuple[tuple[int, int], ...]

    def __post_init__(self):
        if not self.times:
            raise ConfigError("schedule must contain at least one (hour, minute) pair")
        for hour, minute in self.times:
            if not 0 <= hour <= 23 or not 0 <= minute <= 59:
                raise ConfigError(f"invalid schedule time {hour:02d}:{minute:02d}")
        object.__setattr__(self, "times", tuple(sorted(set(self.times))))

    @classmethod
    def daily(cls, hour: int = 0, minute: int = 0) -> "ScheduleSpec":
        return cls(times=((hour, minute),))

    @classmethod
    def from_entries(cls, entries: list) -> "ScheduleSpec":
        """Build a spec from ``{"hours": [...], "minutes": [...]}`` dicts or ``"HH:MM"`` strings.

        Each dict contributes the cartesian product of its hours and minutes.
        A dict without ``minutes`` fires at minute 0; one without ``hours``
        fires every hour.
        """
        times = []
        for entry in entries:
            if isinstance(entry, str):
                times.append(_parse_hhmm(entry))
            elif isinstance(entry, dict):
                hours = entry.get("hours", list(range(24)))
                minutes = entry.get("minutes", [0])
                try:
                    times.extend((int(h), int(m)) for h in hours for m in minutes)
                except (TypeError, ValueError) as exc:
                    raise ConfigError(f"invalid schedule entry {entry!r}") from exc
            else:
                raise ConfigError(f"invalid schedule entry {entry!r}")
        return cls(times=tuple(times))


def _parse_hhmm(value: str) -> tuple[int, int]:
    try:
        hour, minute = value.strip().split(":")
        return int(hour), int(minute)
    except ValueError as exc:
        raise ConfigError(f"invalid schedule time {value!r}, expected HH:MM") from exc


def next_trigger(spec: ScheduleSpec, now: datetime) -> datetime:
    """Return the first instant strictly after *now* matching one of ``spec.times``.

    The result has second and microsecond 0 and carries ``now``'s tzinfo.
    Naive values are interpreted as host local time. Candidates are compared
    by real instant (``timestamp()``). A wall-clock time repeated by a DST
    fall-back matches on both passes, so both folds are candidates.
    """
    reference = now.timestamp()
    day = now.date()
    # Two days always contain a match; the third covers fold/gap corner cases.
    for offset in range(3):
        candidate_day = day + timedelta(days=offset)
        candidates = []
        for hour, minute in spec.times:
            first = localize(datetime.combine(candidate_day, time(hour, minute)), now.tzinfo)
            second = localize(datetime.combine(candidate_day, time(hour, minute, fold=1)), now.tzinfo)
            if first.timestamp() > reference:
                candidates.append(first)
            # fold=1 is a distinct, later instant only inside a repeated hour.
            if second.timestamp() > max(first.timestamp(), reference):
                candidates.append(second)
        if candidates:
            return min(candidates, key=lambda c: c.timestamp())
    raise RuntimeError(f"no trigger found after {now.isoformat()}")  # pragma: no cover


def localize(naive: datetime, tz) -> datetime:
    """Attach *tz* to a naive wall-clock time (no-op for None)."""
    if tz is None:
        return naive
    # pytz zones need localize() to pick the right offset for the date.
    pytz_localize = getattr(tz, "localize", None)
    if pytz_localize is not None:
        return pytz_localize(naive)
    return naive.replace(tzinfo=tz)


class ScheduleTrigger(BaseTrigger):
    """APScheduler trigger that always recomputes from the current wall-clock time.

    ``previous_fire_time`` is ignored: a scheduler that wakes up late
    fires once and then moves on to the next future slot instead of replaying
    every missed one.
    """

    def __init__(self, spec: ScheduleSpec):
        self.spec = spec

    def get_next_fire_time(self, previous_fire_time, now):
        return next_trigger(self.spec, now)

    def __str__(self):
        slots = ", ".join(f"{h:02d}:{m:02d}" for h, m in self.spec.times)
        return f"schedule[{slots}]"

    def __repr__(self):
        return f"<{self.__class__.__name__} ({self})>"


class ScheduleTimer:
    """Invokes *callback* at every trigger instant until shut down."""

    def __init__(self, spec: ScheduleSpec, callback: Callable[[], object],
                 timezone: str | None = None):
        self._spec = spec
        self._callback = callback
        if timezone:
            self._scheduler = BackgroundScheduler(timezone=timezone)
        else:
            self._scheduler = BackgroundScheduler()

    def start(self) -> None:
        self._scheduler.add_job(
            self._callback,
            ScheduleTrigger(self._spec),
            id=JOB_ID,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        self._scheduler.start()
        logger.info("Timer armed, next trigger at %s", self.next_fire_time)

    @property
    def running(self) -> bool:
        return self._scheduler.running

    @property
    def next_fire_time(self) -> datetime | None:
        job = self._scheduler.get_job(JOB_ID)
        # Jobs added before start() carry no next_run_time yet.
        return getattr(job, "next_run_time", None)

    def shutdown(self, wait: bool = True) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)
