"""Pydantic ingestion model for raw drive records.

Every analyzer consumes :class:`RawDrive` instances.  Records fetched from the
upstream vehicle-data service should pass through :func:`parse_drives` so a
malformed record fails fast with a :class:`pydantic.ValidationError` instead
of leaking NaN or negative durations into the analysis.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import SECONDS_PER_HOUR, SECONDS_PER_MINUTE

__all__ = ["RawDrive", "parse_drives", "sort_drives"]


class RawDrive(BaseModel):
    """One contiguous driving interval as reported by the vehicle-data service."""

    model_config = ConfigDict(frozen=True, allow_inf_nan=False, extra="ignore")

    id: int
    started_at: int = Field(ge=0, description="Unix seconds")
    ended_at: int = Field(ge=0, description="Unix seconds")
    odometer_distance: float = Field(ge=0, description="Miles")
    starting_battery: float = Field(ge=0, le=100)
    ending_battery: float = Field(ge=0, le=100)
    starting_location: str = ""
    ending_location: str = ""
    average_speed: float | None = Field(default=None, ge=0, description="mph")
    max_speed: float | None = Field(default=None, ge=0, description="mph")

    @field_validator("starting_location", "ending_location", mode="before")
    @classmethod
    def coerce_location_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value

    @model_validator(mode="after")
    def check_interval(self) -> RawDrive:
        if self.ended_at < self.started_at:
            raise ValueError(
                f"drive {self.id}: ended_at ({self.ended_at}) is before "
                f"started_at ({self.started_at})"
            )
        return self

    @property
    def duration_seconds(self) -> int:
        return self.ended_at - self.started_at

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / SECONDS_PER_MINUTE

    @property
    def duration_hours(self) -> float:
        return self.duration_seconds / SECONDS_PER_HOUR

    @property
    def battery_used(self) -> float:
        """Percentage points consumed during the drive (negative never occurs in practice)."""
        return self.starting_battery - self.ending_battery


def parse_drives(records: Iterable[Mapping[str, Any] | RawDrive]) -> list[RawDrive]:
    """Validate raw records into :class:`RawDrive` instances.

    Already-constructed :class:`RawDrive` objects pass through unchanged.
    Raises :class:`pydantic.ValidationError` on the first malformed record.
    """
    drives: list[RawDrive] = []
    for record in records:
        if isinstance(record, RawDrive):
            drives.append(record)
        else:
            drives.append(RawDrive.model_validate(dict(record)))
    return drives


def sort_drives(drives: Iterable[RawDrive]) -> list[RawDrive]:
    """Chronological copy of *drives*; ``id`` breaks start-time ties deterministically."""
    return sorted(drives, key=lambda d: (d.started_at, d.id))
