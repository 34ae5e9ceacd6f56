"""
Vibe score calculator tests
"""
import pytest

from corridor.models.schemas import IncidentSeverity
from corridor.services.scoring import (
    calculate_vibe_score,
    flow_score,
    generate_summary,
    round_half_up,
    suggest_incident_penalty,
    truncate_summary,
    weather_penalty,
)
from tests.factories import make_normalized, make_segment_data


class TestFlowScore:
    @pytest.mark.parametrize("travel,free_flow,expected", [
        (600, 600, 10.0),
        (500, 600, 10.0),     # faster than free flow
        (650, 600, 10.0),     # ratio 0.923
        (1200, 600, 5.0),     # ratio 0.5
        (2000, 600, 1 + ((0.3 - 0.2) / 0.3) * 4),
        (3000, 600, 1.0),     # ratio 0.2
        (6000, 600, 1.0),     # ratio 0.1
    ])
    def test_bands(self, travel, free_flow, expected):
        assert flow_score(travel, free_flow, False) == pytest.approx(expected)

    def test_band_interpolation(self):
        # ratio 0.7 -> 5 + (0.2 / 0.4) * 5
        assert flow_score(600 / 0.7, 600, False) == pytest.approx(7.5)

    @pytest.mark.parametrize("travel", [None, 0, -10])
    def test_unknown_travel_time_is_neutral(self, travel):
        assert flow_score(travel, 600, False) == 5.0

    @pytest.mark.parametrize("travel", [None, 60, 6000])
    def test_anomaly_forces_full_flow(self, travel):
        assert flow_score(travel, 600, True) == 10.0


class TestScenarios:
    def test_free_flow_is_perfect(self):
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=600, free_flow_seconds=600))
        assert result.flow_score == 10.0
        assert result.score == 10.0
        assert result.summary == "Smooth sailing! Perfect conditions."

    def test_heavy_congestion(self):
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=2400, free_flow_seconds=600))
        assert result.flow_score == pytest.approx(1 + ((0.25 - 0.2) / 0.3) * 4)
        assert result.score == 1.7
        assert result.summary == "Heavy delays. Definitely wait this out."

    def test_anomalous_speed_scores_full_flow(self):
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=60, free_flow_seconds=600,
                                                        speed_anomaly_detected=True))
        assert result.flow_score == 10.0
        assert result.score == 10.0
        assert result.summary == "Conditions look good, but data may be stale."

    def test_two_incidents_on_clear_road(self):
        incidents = [make_normalized("a", penalty=2), make_normalized("b", penalty=5)]
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=600, free_flow_seconds=600,
                                                        incidents=incidents))
        assert result.incident_penalty == 7.0
        assert result.score == 3.0
        assert result.summary == "Major incident ahead. Consider waiting."

    def test_winter_conditions_on_moderate_flow(self):
        # ratio 0.8 -> flow 8.75, minus 1 for snow
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=900, free_flow_seconds=720,
                                                        road_condition="Snow Packed"))
        assert result.weather_penalty == 1.0
        assert result.score == 7.8
        assert result.summary == "Moving well, but watch for slick spots."

    def test_score_clamped_at_zero(self):
        incidents = [make_normalized("a", penalty=5), make_normalized("b", penalty=5)]
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=2400, free_flow_seconds=600,
                                                        incidents=incidents, weather_surface="Icy"))
        assert result.score == 0.0
        assert result.summary == "Road closure reported. Check alternatives."

    def test_missing_travel_time_scores_neutral(self):
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=None))
        assert result.flow_score == 5.0
        assert result.score == 5.0
        assert result.summary == "Moderate traffic. Allow extra time."


class TestProperties:
    @pytest.mark.parametrize("travel", [None, 100, 720, 1000, 2000, 5000])
    @pytest.mark.parametrize("penalties", [[], [1], [2, 5], [5, 5, 5]])
    def test_score_bounded_and_not_above_flow(self, travel, penalties):
        incidents = [make_normalized(str(i), penalty=p) for i, p in enumerate(penalties)]
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=travel, incidents=incidents,
                                                        road_condition="Icy"))
        assert 0.0 <= result.score <= 10.0
        assert result.score <= round_half_up(result.flow_score)

    def test_idempotent(self):
        data = make_segment_data(travel_time_seconds=1000, incidents=[make_normalized(penalty=2)],
                                 road_condition="Wet", weather_surface="Snow")
        assert calculate_vibe_score(data) == calculate_vibe_score(data)

    @pytest.mark.parametrize("travel", [720, 1100, 2000])
    def test_adding_incident_never_raises_score(self, travel):
        base = make_segment_data(travel_time_seconds=travel, incidents=[make_normalized("a", penalty=1)])
        worse = make_segment_data(travel_time_seconds=travel,
                                  incidents=[make_normalized("a", penalty=1), make_normalized("b", penalty=2)])
        assert calculate_vibe_score(worse).score <= calculate_vibe_score(base).score

    def test_no_penalties_score_equals_rounded_flow(self):
        result = calculate_vibe_score(make_segment_data(travel_time_seconds=1100))
        assert result.score == round_half_up(result.flow_score)


class TestPenalties:
    @pytest.mark.parametrize("road,surface,expected", [
        ("Icy Spots", None, 1.0),
        (None, "Snow", 1.0),
        ("Wet", "Frozen", 1.0),
        ("Wet", "Wet", 0.0),
        (None, None, 0.0),
    ])
    def test_weather_penalty(self, road, surface, expected):
        assert weather_penalty(road, surface) == expected

    @pytest.mark.parametrize("incident_type,severity,expected", [
        ("Lane Closure", IncidentSeverity.MAJOR, 2.0),
        ("Right Lane Closed", IncidentSeverity.MINOR, 2.0),
        ("Road Closure", IncidentSeverity.MINOR, 5.0),
        ("All Lanes Closed", IncidentSeverity.MAJOR, 5.0),
        ("All lanes closed both directions", IncidentSeverity.MINOR, 5.0),
        ("Lane Blocked", IncidentSeverity.MINOR, 5.0),
        ("Closed", IncidentSeverity.MODERATE, 5.0),
        ("Crash", IncidentSeverity.MAJOR, 5.0),
        ("Accident", IncidentSeverity.MINOR, 2.0),
        ("Traction Law", IncidentSeverity.MODERATE, 1.0),
        ("Chain Law", IncidentSeverity.MAJOR, 1.0),
        ("Debris", IncidentSeverity.MAJOR, 2.0),
        ("Debris", IncidentSeverity.MODERATE, 1.0),
        ("Debris", IncidentSeverity.MINOR, 0.0),
        (None, IncidentSeverity.MINOR, 0.0),
    ])
    def test_suggest_incident_penalty(self, incident_type, severity, expected):
        assert suggest_incident_penalty(incident_type, severity) == expected


class TestSummaryText:
    def test_truncate_summary(self):
        text = "word " * 40
        truncated = truncate_summary(text)
        assert len(truncated) <= 100
        assert truncated.endswith("...")

    def test_truncate_collapses_whitespace(self):
        assert truncate_summary("  LEFT   LANE\nCLOSED ") == "LEFT LANE CLOSED"

    @pytest.mark.parametrize("score,incidents,weather,expected", [
        (7.5, 1.0, 0.0, "Moving well, minor incident reported."),
        (7.5, 0.0, 0.0, "Looking good! Light traffic ahead."),
        (6.0, 2.0, 1.0, "Expect delays due to incident(s)."),
        (6.0, 0.0, 1.0, "Winter conditions. Allow extra time."),
        (4.0, 2.0, 0.0, "Significant slowdowns. Grab dinner first?"),
    ])
    def test_summary_bands(self, score, incidents, weather, expected):
        assert generate_summary(score, incidents, weather, False) == expected

    def test_anomaly_summary_mentions_incidents_first(self):
        assert generate_summary(8.0, 1.0, 1.0, True) == "Data unclear, but incidents reported. Drive carefully."
        assert generate_summary(9.0, 0.0, 1.0, True) == "Data unclear, and roads may be slick. Drive carefully."
