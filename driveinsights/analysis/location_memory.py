"""Per-session memory of learned home/work charging locations.

The memory is owned by the caller and handed to a
:class:`~driveinsights.analysis.charging.ChargingSessionDetector`.  It only
raises classification confidence; clearing it never changes correctness.
The long-stay counter is bounded to ``max_tracked`` labels. Not safe for
concurrent mutation; use one instance per analysis session.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from .labels import LocationType

LOGGER = logging.getLogger(__name__)

MAX_TRACKED_LOCATIONS = 256


@dataclass(slots=True)
class LearnedLocations:
    home: set[str] = field(default_factory=set)
    work: set[str] = field(default_factory=set)
    long_stay_counts: Counter[str] = field(default_factory=Counter)
    max_tracked: int = MAX_TRACKED_LOCATIONS

    def __post_init__(self) -> None:
        if self.max_tracked < 1:
            raise ValueError(f"max_tracked must be ≥1, got {self.max_tracked!r}")

    def lookup(self, location: str) -> LocationType | None:
        if location in self.home:
            return LocationType.HOME
        if location in self.work:
            return LocationType.WORK
        return None

    def record_long_stay(self, location: str) -> int:
        """Count a long stay at *location*; returns the count *before* this visit."""
        if location not in self.long_stay_counts:
            self._evict_if_full()
        previous = self.long_stay_counts[location]
        self.long_stay_counts[location] = previous + 1
        return previous

    def _evict_if_full(self) -> None:
        """Drop the least-visited label (oldest on ties) once the counter is full."""
        if len(self.long_stay_counts) < self.max_tracked:
            return
        counts = self.long_stay_counts
        evicted = min(counts, key=counts.__getitem__)
        del counts[evicted]
        LOGGER.debug("Evicted %r from long-stay memory (%d tracked)", evicted, len(counts))

    def mark_home(self, location: str) -> None:
        self.home.add(location)

    def mark_work(self, location: str) -> None:
        if location not in self.home:
            self.work.add(location)

    def reset(self) -> None:
        self.home.clear()
        self.work.clear()
        self.long_stay_counts.clear()

    def to_dict(self) -> dict[str, Any]:
        return {
            "home": sorted(self.home),
            "work": sorted(self.work),
            "long_stay_counts": dict(sorted(self.long_stay_counts.items())),
        }
