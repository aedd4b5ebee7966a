import logging
import math
from dataclasses import dataclass, fields, replace
from typing import Optional

import yaml

from udprobe.core.errors import ConfigError
from udprobe.core.lib.probe_engine import DEFAULT_MAX_RETRIES, DEFAULT_TIMEOUT
from udprobe.core.scan import DEFAULT_PACING_DELAY


@dataclass(frozen=True)
class Config:
    """Scan settings, overridable from a YAML file and the command line."""

    timeout: float = DEFAULT_TIMEOUT
    max_retries: int = DEFAULT_MAX_RETRIES
    pacing_delay: float = DEFAULT_PACING_DELAY
    probes_file: Optional[str] = None
    allow_degraded: bool = True
    log_level: str = "INFO"

    def validate(self):
        if not math.isfinite(self.timeout) or self.timeout <= 0:
            raise ConfigError("timeout must be a finite number greater than 0")
        if self.max_retries < 1:
            raise ConfigError("max_retries must be at least 1")
        if not math.isfinite(self.pacing_delay) or self.pacing_delay < 0:
            raise ConfigError("pacing_delay must be a finite number, 0 or more")
        if not isinstance(logging.getLevelName(str(self.log_level).upper()), int):
            raise ConfigError(f"unknown log_level {self.log_level!r}")
        return self

    def merge(self, **overrides):
        """Return a copy with every override that is not None applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes).validate()


_TYPES = {
    "timeout": (int, float),
    "max_retries": (int,),
    "pacing_delay": (int, float),
    "probes_file": (str,),
    "allow_degraded": (bool,),
    "log_level": (str,),
}


def load_config(path=None) -> Config:
    if path is None:
        return Config()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"malformed config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain a mapping")

    known = {f.name for f in fields(Config)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"unknown config keys in {path}: {', '.join(unknown)}")

    for key, value in data.items():
        expected = _TYPES[key]
        # bool is an int subclass, keep it out of numeric settings
        if not isinstance(value, expected) or (isinstance(value, bool) and bool not in expected):
            raise ConfigError(f"config key {key!r} has invalid value {value!r}")

    return Config(**data).validate()
