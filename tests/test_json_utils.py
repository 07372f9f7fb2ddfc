from __future__ import annotations

import json
import math

from builders import SUPERCHARGER, at, make_drive

from driveinsights.analysis import ChargingSessionDetector, LocationType, TrendDirection
from driveinsights.json_utils import safe_json_dumps, sanitize_for_json, sanitize_value


class _Record:
    def to_dict(self) -> dict[str, object]:
        return {"direction": TrendDirection.IMPROVING, "ratio": math.nan}


def test_non_finite_values_become_null() -> None:
    cleaned, found = sanitize_for_json({"a": [1.0, math.inf], "b": (math.nan, 2)})
    assert cleaned == {"a": [1.0, None], "b": [None, 2]}
    assert found is True


def test_finite_payload_is_untouched() -> None:
    cleaned, found = sanitize_for_json({"a": 1.5, "b": "text", "c": None})
    assert cleaned == {"a": 1.5, "b": "text", "c": None}
    assert found is False


def test_to_dict_objects_and_enum_keys_are_expanded() -> None:
    payload = sanitize_value({LocationType.HOME: _Record()})
    assert payload == {"home": {"direction": "improving", "ratio": None}}


def test_charging_report_serialises_strictly() -> None:
    drives = [
        make_drive(1, start=at(hours=8), end_location=SUPERCHARGER, end_battery=30),
        make_drive(2, start=at(hours=9), start_location=SUPERCHARGER, start_battery=80),
    ]
    report = ChargingSessionDetector().analyze(drives)
    decoded = json.loads(safe_json_dumps(report, indent=2))
    assert decoded["analysis"]["total_sessions"] == 1
    assert decoded["sessions"][0]["location_type"] == "supercharger"
    assert set(decoded["analysis"]["sessions_by_location"]) == {
        "home",
        "work",
        "supercharger",
        "public",
        "unknown",
    }
