"""Shared fixtures for the driveinsights test suite."""

from __future__ import annotations

import pytest

from driveinsights.analysis import LearnedLocations
from driveinsights.config import AnalyticsConfig


@pytest.fixture
def config() -> AnalyticsConfig:
    return AnalyticsConfig.default()


@pytest.fixture
def flat_rate_config() -> AnalyticsConfig:
    """Defaults with time-of-use pricing switched off."""
    return AnalyticsConfig.from_dict({"rates": {"time_of_use": {"enabled": False}}})


@pytest.fixture
def memory() -> LearnedLocations:
    return LearnedLocations()
