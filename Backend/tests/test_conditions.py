"""
Condition severity resolver tests
"""
import pytest

from corridor.models.schemas import CdotWeatherSensor, CdotWeatherStation
from corridor.services.conditions import condition_severity, road_surface_readings, worst_condition


@pytest.mark.parametrize("description,rank", [
    ("Icy Spots", 5),
    ("Black ICE", 5),
    ("Snow Packed", 4),
    ("Slushy", 3),
    ("Wet", 2),
    ("Dry", 1),
    ("Fog", 0),
    ("", 0),
    (None, 0),
])
def test_condition_severity(description, rank):
    assert condition_severity(description) == rank


def test_worst_condition_picks_highest_rank():
    assert worst_condition(["Wet", "Snow Packed", "Dry"]) == "Snow Packed"


def test_worst_condition_keeps_first_seen_on_tie():
    assert worst_condition(["Snow Packed", "Snowy"]) == "Snow Packed"


@pytest.mark.parametrize("descriptions", [[], ["Dry"], ["Dry", "Clear"], [None]])
def test_unremarkable_conditions_are_none(descriptions):
    assert worst_condition(descriptions) is None


def test_road_surface_readings():
    stations = [
        CdotWeatherStation(id="a", sensors=[
            CdotWeatherSensor(type="Air Temperature", current_reading="24 F"),
            CdotWeatherSensor(type="Road Surface Status", current_reading="Snow"),
        ]),
        CdotWeatherStation(id="b", sensors=[
            CdotWeatherSensor(type="road surface status", current_reading=None),
            CdotWeatherSensor(type="Road Surface Status", current_reading="Wet"),
        ]),
    ]
    assert road_surface_readings(stations) == ["Snow", "Wet"]
