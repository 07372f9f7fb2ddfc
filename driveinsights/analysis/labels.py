"""Canonical string labels shared by the analyzers."""

from __future__ import annotations

from enum import StrEnum


class LocationType(StrEnum):
    HOME = "home"
    WORK = "work"
    SUPERCHARGER = "supercharger"
    PUBLIC = "public"
    UNKNOWN = "unknown"


class StopType(StrEnum):
    SHORT = "short"
    CHARGING = "charging"
    EXCLUDED = "excluded"


class TrendDirection(StrEnum):
    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"


class Confidence(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class WeatherFactor(StrEnum):
    """Weather proxy inferred from consumption alone (no temperature input)."""

    HOT = "hot"
    COLD = "cold"
    MILD = "mild"


def trend_direction(change_pct: float, threshold_pct: float) -> TrendDirection:
    """Classify a consumption change where positive means *less* energy used."""
    if change_pct > threshold_pct:
        return TrendDirection.IMPROVING
    if change_pct < -threshold_pct:
        return TrendDirection.DECLINING
    return TrendDirection.STABLE
