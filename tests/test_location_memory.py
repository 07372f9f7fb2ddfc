from __future__ import annotations

import pytest

from driveinsights.analysis import LearnedLocations, LocationType


class TestLearnedLocations:
    def test_record_returns_prior_count(self, memory: LearnedLocations) -> None:
        assert memory.record_long_stay("Depot") == 0
        assert memory.record_long_stay("Depot") == 1
        assert memory.long_stay_counts["Depot"] == 2

    def test_home_wins_over_work(self, memory: LearnedLocations) -> None:
        memory.mark_home("Garage")
        memory.mark_work("Garage")
        assert memory.lookup("Garage") is LocationType.HOME
        assert memory.work == set()

    def test_counter_is_bounded(self) -> None:
        memory = LearnedLocations(max_tracked=2)
        memory.record_long_stay("Depot")
        memory.record_long_stay("Depot")
        memory.record_long_stay("Hotel")
        memory.record_long_stay("Cabin")
        assert set(memory.long_stay_counts) == {"Depot", "Cabin"}

    def test_ties_evict_oldest_label(self) -> None:
        memory = LearnedLocations(max_tracked=2)
        for label in ("Depot", "Hotel", "Cabin"):
            memory.record_long_stay(label)
        assert list(memory.long_stay_counts) == ["Hotel", "Cabin"]

    def test_known_label_never_evicts(self) -> None:
        memory = LearnedLocations(max_tracked=1)
        memory.record_long_stay("Depot")
        assert memory.record_long_stay("Depot") == 1
        assert dict(memory.long_stay_counts) == {"Depot": 2}

    def test_invalid_bound(self) -> None:
        with pytest.raises(ValueError, match="max_tracked"):
            LearnedLocations(max_tracked=0)

    def test_reset_and_to_dict(self, memory: LearnedLocations) -> None:
        memory.mark_work("Office")
        memory.record_long_stay("Office")
        assert memory.to_dict() == {
            "home": [],
            "work": ["Office"],
            "long_stay_counts": {"Office": 1},
        }
        memory.reset()
        assert memory.to_dict() == {"home": [], "work": [], "long_stay_counts": {}}
