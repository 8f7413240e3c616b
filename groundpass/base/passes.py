"""The Pass record: one predicted observation opportunity of a satellite from the ground station."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, NamedTuple

from groundpass.common.utils import floor_to_minute, parse_utc


class PassKey(NamedTuple):
    """Identity of a pass: same object starting in the same UTC minute is the same opportunity."""

    sat_id: str
    date: str  # YYYY-MM-DD
    time: str  # HH:MM

    def __str__(self):
        return f"{self.sat_id}@{self.date}T{self.time}Z"


@dataclass
class Pass:
    object: str
    channel: str
    start_time: datetime
    end_time: datetime
    max_elevation: float
    avg_elevation: float
    min_range: float
    avg_range: float
    recorded: bool = False
    duration_minutes: int = field(init=False)

    def __post_init__(self):
        self.start_time = floor_to_minute(self.start_time)
        self.end_time = floor_to_minute(self.end_time)
        if not self.start_time < self.end_time:
            raise ValueError(f"Pass of {self.object} must start before it ends: {self.start_time} >= {self.end_time}")
        self.duration_minutes = round((self.end_time - self.start_time).total_seconds() / 60)
        self.max_elevation = round(float(self.max_elevation), 2)
        self.avg_elevation = round(float(self.avg_elevation), 2)
        self.min_range = round(float(self.min_range), 2)
        self.avg_range = round(float(self.avg_range), 2)

    @property
    def key(self) -> PassKey:
        return PassKey(self.object, self.start_time.strftime("%Y-%m-%d"), self.start_time.strftime("%H:%M"))

    def to_dict(self) -> dict[str, Any]:
        return {
            "object": self.object,
            "channel": self.channel,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "durationMinutes": self.duration_minutes,
            "maxElevation": self.max_elevation,
            "avgElevation": self.avg_elevation,
            "minRange": self.min_range,
            "avgRange": self.avg_range,
            "recorded": self.recorded,
        }

    @classmethod
    def from_dict(cls, record: dict[str, Any]) -> "Pass":
        """Decode a persisted record. Unknown keys are ignored; `durationMinutes` is always re-derived.

        Raises:
            KeyError, TypeError, ValueError: if a required field is missing or malformed
        """
        return cls(
            object=str(record["object"]),
            channel=str(record["channel"]),
            start_time=parse_utc(record["startTime"]),
            end_time=parse_utc(record["endTime"]),
            max_elevation=record["maxElevation"],
            avg_elevation=record["avgElevation"],
            min_range=record["minRange"],
            avg_range=record["avgRange"],
            recorded=bool(record.get("recorded", False)),
        )
