"""Configuration loading from an optional YAML file and environment variables."""

import logging
import os
from dataclasses import dataclass, field

import yaml

from log_manager.errors import ConfigError
from log_manager.schedule import ScheduleSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "config.yml"


@dataclass(frozen=True)
class StreamConfig:
    live_file: str        # e.g. "out.log"
    archive_prefix: str   # e.g. "node-out-"


DEFAULT_STREAMS = (
    StreamConfig(live_file="out.log", archive_prefix="node-out-"),
    StreamConfig(live_file="err.log", archive_prefix="node-err-"),
)


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class RetentionPolicy:
    max_age_days: int = 7
    # Sweep only runs once more than this many archives match; None disables.
    count_gate: int | None = 7

    def __post_init__(self):
        if not _is_int(self.max_age_days) or self.max_age_days < 0:
            raise ConfigError(f"max_age_days must be a non-negative integer, got {self.max_age_days!r}")
        if self.count_gate is not None and (not _is_int(self.count_gate) or self.count_gate < 0):
            raise ConfigError(f"count_gate must be a non-negative integer or null, got {self.count_gate!r}")


@dataclass(frozen=True)
class ManagerConfig:
    directory: str | None = None
    streams: tuple[StreamConfig, ...] = DEFAULT_STREAMS
    schedule: ScheduleSpec = field(default_factory=ScheduleSpec.daily)
    retention: RetentionPolicy = field(default_factory=RetentionPolicy)
    timezone: str | None = None

    @classmethod
    def from_dict(cls, d: dict) -> "ManagerConfig":
        if "streams" in d:
            if not isinstance(d["streams"], list):
                raise ConfigError(f"streams must be a list, got {d['streams']!r}")
            streams = tuple(_stream_from_dict(s) for s in d["streams"])
        else:
            streams = (
                StreamConfig(d.get("out_log", "out.log"), "node-out-"),
                StreamConfig(d.get("err_log", "err.log"), "node-err-"),
            )
        if not streams:
            raise ConfigError("at least one stream must be configured")

        schedule = d.get("schedule")
        max_age_days = _as_int(d.get("max_age_days", 7), "max_age_days")
        count_gate = d.get("count_gate", max_age_days)
        if count_gate is not None:
            count_gate = _as_int(count_gate, "count_gate")

        return cls(
            directory=d.get("directory"),
            streams=streams,
            schedule=ScheduleSpec.from_entries(schedule) if schedule else ScheduleSpec.daily(),
            retention=RetentionPolicy(max_age_days=max_age_days, count_gate=count_gate),
            timezone=d.get("timezone"),
        )


def _stream_from_dict(d) -> StreamConfig:
    try:
        return StreamConfig(live_file=d["live_file"], archive_prefix=d["archive_prefix"])
    except (KeyError, TypeError) as exc:
        raise ConfigError(f"stream entry needs live_file and archive_prefix: {d!r}") from exc


def _as_int(value, name: str) -> int:
    if value is None or isinstance(value, bool):
        raise ConfigError(f"{name} must be an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{name} must be an integer, got {value!r}") from exc


def load_yaml_config(path: str | None) -> dict:
    """Load the YAML config file. Returns empty dict if no path or file is missing."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning("Config file %s not found, using defaults", path)
        return {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    logger.info("Loaded YAML config from %s", path)
    return data


def load_config(path: str | None = None) -> ManagerConfig:
    """Build ManagerConfig from the YAML file, then apply environment overrides.

    ``CONFIG_PATH`` overrides *path*; ``LOG_DIR``, ``MAX_AGE_DAYS`` and
    ``LOG_TIMEZONE`` override the matching keys.
    """
    path = os.environ.get("CONFIG_PATH", path)
    data = dict(load_yaml_config(path))

    if "LOG_DIR" in os.environ:
        data["directory"] = os.environ["LOG_DIR"]
    if "MAX_AGE_DAYS" in os.environ:
        data["max_age_days"] = os.environ["MAX_AGE_DAYS"]
    if "LOG_TIMEZONE" in os.environ:
        data["timezone"] = os.environ["LOG_TIMEZONE"]

    return ManagerConfig.from_dict(data)
