"""Shared unit and calendar constants, the single source of truth.

Every numeric literal that appears in more than one module should live here
so that a change only needs to happen in one place.  Tunable heuristics
(thresholds, rates, pack capacity) belong in :mod:`driveinsights.config`
instead.
"""

from __future__ import annotations

from typing import Final

# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------
SECONDS_PER_MINUTE: Final[float] = 60.0
SECONDS_PER_HOUR: Final[float] = 3600.0
SECONDS_PER_DAY: Final[float] = 86_400.0
SECONDS_PER_WEEK: Final[float] = 7 * SECONDS_PER_DAY
MINUTES_PER_HOUR: Final[float] = 60.0

DAY_NAMES: Final[tuple[str, ...]] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)
"""Indexed by :meth:`datetime.weekday` (Monday is 0)."""

WEEKEND_DAYS: Final[frozenset[int]] = frozenset({5, 6})

# ---------------------------------------------------------------------------
# Energy
# ---------------------------------------------------------------------------
PERCENT: Final[float] = 100.0
EFFICIENCY_DISTANCE_MILES: Final[float] = 100.0
"""Efficiency is always reported as kWh per this many miles."""

# ---------------------------------------------------------------------------
# Placeholders
# ---------------------------------------------------------------------------
UNKNOWN_LABEL: Final[str] = "Unknown"
NOT_AVAILABLE: Final[str] = "N/A"
