"""Run configuration for a single provisioning run."""

import re
from datetime import timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_HEALTH_PATH = "/health"
DEFAULT_PORT = 80
DEFAULT_INSTANCES = 1
DEFAULT_HEALTH_CHECK_GRACE_PERIOD = "1m"
DEFAULT_UPDATE_TIMEOUT = "30m"
DEFAULT_UPDATE_TICK = "1m"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration string such as "1m", "1h30m" or "2.5s"

    Accepts the same syntax as Go's time.ParseDuration (the format the
    flags have always used), except that negative durations are rejected.
    """
    text = value.strip()
    if text in ("0", "+0"):
        return timedelta(0)
    if text.startswith("-"):
        raise ValueError(f"negative duration {value!r}")
    if text.startswith("+"):
        text = text[1:]
    if not text:
        raise ValueError(f"invalid duration {value!r}")

    seconds = 0.0
    position = 0
    while position < len(text):
        match = _DURATION_PART.match(text, position)
        if not match:
            raise ValueError(f"invalid duration {value!r}")
        number, unit = match.groups()
        seconds += float(number) * _DURATION_UNITS[unit]
        position = match.end()
    try:
        return timedelta(seconds=seconds)
    except OverflowError:
        raise ValueError(f"duration {value!r} is too large")


class RunConfig(BaseModel):
    """Immutable input of a provisioning run"""

    model_config = ConfigDict(frozen=True)

    group_name: str = Field(..., min_length=1, description="Logical fleet name, seeds every resource name")
    instance_id: str = Field(..., min_length=1, description="EC2 instance to build the fleet image from")
    instances: int = Field(DEFAULT_INSTANCES, ge=1, description="Desired number of instances in the group")
    health_path: str = Field(DEFAULT_HEALTH_PATH, description="HTTP path of the health check")
    port: int = Field(DEFAULT_PORT, ge=1, le=65535, description="HTTP traffic and health check port")
    health_check_grace_period: timedelta = Field(timedelta(minutes=1), ge=timedelta(0))
    update_timeout: timedelta = Field(timedelta(minutes=30), ge=timedelta(0))
    update_tick: timedelta = Field(timedelta(minutes=1), ge=timedelta(0))
    region: Optional[str] = None

    @field_validator("health_path")
    @classmethod
    def _check_health_path(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError("health path must start with '/'")
        return value

    @model_validator(mode="after")
    def _check_timing(self) -> "RunConfig":
        if self.update_timeout < self.update_tick:
            raise ValueError(
                f"update timeout {self.update_timeout} must not be shorter than the update tick {self.update_tick}"
            )
        return self

    @property
    def max_instances(self) -> int:
        return 2 * self.instances

    @property
    def grace_period_seconds(self) -> int:
        return int(self.health_check_grace_period.total_seconds())
