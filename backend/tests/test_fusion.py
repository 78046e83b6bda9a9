"""
Unit tests for the metric fusion engine.
Tests smoothing, accumulation, alerting, the circadian histogram and daily reset.
"""

from datetime import datetime, timezone

import pytest

from eldersync.core.fusion import MetricFusionEngine, smooth, update_circadian_pattern
from eldersync.models import AlertType, PatientMetrics, SensorReading

NOW = datetime(2024, 1, 1, 10, 0, 0, tzinfo=timezone.utc)
AFTERNOON = datetime(2024, 1, 1, 14, 0, 0, tzinfo=timezone.utc)


def reading(**metrics) -> SensorReading:
    return SensorReading.model_validate({"metrics": metrics})


@pytest.fixture
def engine():
    return MetricFusionEngine()


@pytest.fixture
def busy_day():
    return PatientMetrics(
        step_count=4200,
        average_cadence=102.0,
        time_seated=6.5,
        time_standing=2.0,
        time_walking=1.5,
        gait_speed=1.1,
        postural_stability=80.0,
        falls_detected=True,
        falls_timestamp=NOW,
        inactivity_episodes=3,
        inactivity_avg_duration=35.0,
        tug_estimated=11.2,
        abrupt_transitions=7,
        circadian_pattern=[float(hour) for hour in range(24)],
    )


class TestSmoothing:
    """Tests for exponential smoothing with cold start."""

    @pytest.mark.parametrize("value", [0.5, 95.0, 120.0])
    def test_cold_start_seeds_value(self, engine, value):
        result = engine.apply(PatientMetrics(), reading(averageCadence=value), NOW)
        assert result.metrics.average_cadence == value

    def test_running_value_is_smoothed(self, engine):
        current = PatientMetrics(average_cadence=100.0, gait_speed=1.0, inactivity_avg_duration=30.0)
        result = engine.apply(
            current,
            reading(averageCadence=80.0, gaitSpeed=2.0, inactivityAvgDuration=40.0),
            NOW,
        )
        assert result.metrics.average_cadence == pytest.approx(100.0 * 0.7 + 80.0 * 0.3)
        assert result.metrics.gait_speed == pytest.approx(1.0 * 0.7 + 2.0 * 0.3)
        assert result.metrics.inactivity_avg_duration == pytest.approx(30.0 * 0.7 + 40.0 * 0.3)

    def test_postural_stability_uses_heavier_retention(self, engine):
        current = PatientMetrics(postural_stability=80.0)
        result = engine.apply(current, reading(posturalStability=60.0), NOW)
        assert result.metrics.postural_stability == pytest.approx(80.0 * 0.8 + 60.0 * 0.2)

    def test_absent_sample_keeps_value(self, engine, busy_day):
        result = engine.apply(busy_day, reading(), NOW)
        assert result.metrics.average_cadence == busy_day.average_cadence
        assert result.metrics.gait_speed == busy_day.gait_speed
        assert result.metrics.postural_stability == busy_day.postural_stability

    def test_smooth_helper(self):
        assert smooth(0.0, 5.0) == 5.0
        assert smooth(10.0, None) == 10.0
        assert smooth(10.0, 20.0, (0.5, 0.5)) == pytest.approx(15.0)


class TestAccumulation:
    """Tests for additive counters and replaced fields."""

    def test_counters_add_up(self, engine, busy_day):
        result = engine.apply(
            busy_day,
            reading(
                stepCount=120,
                timeSeated=0.5,
                timeStanding=0.25,
                timeWalking=0.1,
                abruptTransitions=2,
            ),
            NOW,
        )
        assert result.metrics.step_count == 4320
        assert result.metrics.time_seated == pytest.approx(7.0)
        assert result.metrics.time_standing == pytest.approx(2.25)
        assert result.metrics.time_walking == pytest.approx(1.6)
        assert result.metrics.abrupt_transitions == 9

    def test_tug_replaced_by_positive_estimate(self, engine, busy_day):
        result = engine.apply(busy_day, reading(tugEstimated=9.4), NOW)
        assert result.metrics.tug_estimated == 9.4

    @pytest.mark.parametrize("estimate", [0, -3.0])
    def test_tug_ignores_non_positive_estimate(self, engine, busy_day, estimate):
        result = engine.apply(busy_day, reading(tugEstimated=estimate), NOW)
        assert result.metrics.tug_estimated == busy_day.tug_estimated

    def test_current_is_not_mutated(self, engine, busy_day):
        before = busy_day.model_copy(deep=True)
        engine.apply(busy_day, reading(stepCount=10, hourlyActivity=5, fallDetected=True), AFTERNOON)
        assert busy_day == before

    def test_missing_current_defaults_to_zero_state(self, engine):
        result = engine.apply(None, reading(stepCount=3), NOW)
        assert result.metrics.step_count == 3
        assert result.metrics.circadian_pattern == [0.0] * 24


class TestFallsAndAlerts:
    """Tests for sticky fall state and alert emission."""

    def test_fall_raises_alert_and_sets_flag(self, engine):
        payload = SensorReading.model_validate({
            "metrics": {"fallDetected": True},
            "raw": {"accel": {"x": 0.1, "y": 9.7, "z": 0.3}},
        })
        result = engine.apply(PatientMetrics(), payload, NOW)

        assert result.metrics.falls_detected is True
        assert result.metrics.falls_timestamp == NOW
        assert len(result.alerts) == 1
        alert = result.alerts[0]
        assert alert.type == AlertType.FALL_DETECTED
        assert alert.acknowledged is False
        assert alert.details == {"raw": {"accel": {"x": 0.1, "y": 9.7, "z": 0.3}}}

    def test_fall_alert_repeats_even_when_already_flagged(self, engine, busy_day):
        result = engine.apply(busy_day, reading(fallDetected=True), AFTERNOON)
        assert [alert.type for alert in result.alerts] == [AlertType.FALL_DETECTED]
        assert result.metrics.falls_timestamp == AFTERNOON

    def test_fall_flag_is_sticky(self, engine, busy_day):
        result = engine.apply(busy_day, reading(fallDetected=False), AFTERNOON)
        assert result.metrics.falls_detected is True
        assert result.metrics.falls_timestamp == NOW
        assert result.alerts == []

    def test_inactivity_alert(self, engine):
        current = PatientMetrics(inactivity_episodes=2)
        result = engine.apply(current, reading(inactivityEpisodes=1, inactivityAvgDuration=40), NOW)

        assert result.metrics.inactivity_episodes == 3
        assert len(result.alerts) == 1
        assert result.alerts[0].type == AlertType.PROLONGED_INACTIVITY
        assert result.alerts[0].duration == 40

    def test_inactivity_alert_without_duration(self, engine):
        result = engine.apply(PatientMetrics(), reading(inactivityEpisodes=2), NOW)
        assert result.alerts[0].duration == 0

    def test_both_alerts_in_one_reading(self, engine):
        result = engine.apply(
            PatientMetrics(),
            reading(fallDetected=True, inactivityEpisodes=1, inactivityAvgDuration=12),
            NOW,
        )
        assert {alert.type for alert in result.alerts} == {
            AlertType.FALL_DETECTED,
            AlertType.PROLONGED_INACTIVITY,
        }
        assert len({alert.id for alert in result.alerts}) == 2

    def test_fractional_counts_are_kept(self, engine):
        result = engine.apply(PatientMetrics(), reading(inactivityEpisodes=0.5, stepCount=2.5), NOW)

        assert result.metrics.inactivity_episodes == 0.5
        assert result.metrics.step_count == 2.5
        assert [alert.type for alert in result.alerts] == [AlertType.PROLONGED_INACTIVITY]

    def test_zero_inactivity_raises_nothing(self, engine):
        result = engine.apply(PatientMetrics(), reading(inactivityEpisodes=0), NOW)
        assert result.alerts == []


class TestCircadianPattern:
    """Tests for the 24-bucket activity histogram."""

    def test_full_day_overwrites_pattern(self, engine, busy_day):
        day = [0.0] * 24
        day[5] = 10.0
        for now in (NOW, AFTERNOON):
            result = engine.apply(busy_day, reading(hourlyActivity=day), now)
            assert result.metrics.circadian_pattern == day

    def test_scalar_increments_current_hour(self, engine, busy_day):
        result = engine.apply(busy_day, reading(hourlyActivity=7), AFTERNOON)
        pattern = result.metrics.circadian_pattern

        assert pattern[14] == busy_day.circadian_pattern[14] + 7
        for hour in range(24):
            if hour != 14:
                assert pattern[hour] == busy_day.circadian_pattern[hour]

    def test_wrong_length_list_is_ignored(self, engine, busy_day):
        result = engine.apply(busy_day, reading(hourlyActivity=[1.0, 2.0, 3.0]), AFTERNOON)
        assert result.metrics.circadian_pattern == busy_day.circadian_pattern

    def test_absent_activity_leaves_pattern(self, engine, busy_day):
        result = engine.apply(busy_day, reading(stepCount=1), AFTERNOON)
        assert result.metrics.circadian_pattern == busy_day.circadian_pattern

    def test_helper_repairs_short_pattern(self):
        assert update_circadian_pattern([1.0], 2, 3)[3] == 2
        assert len(update_circadian_pattern([1.0], 2, 3)) == 24


class TestScenarios:
    """End-to-end fusion scenarios."""

    def test_first_reading_of_new_patient(self, engine):
        result = engine.apply(
            PatientMetrics(),
            reading(stepCount=120, averageCadence=95, fallDetected=False),
            NOW,
        )
        assert result.metrics.step_count == 120
        assert result.metrics.average_cadence == 95
        assert result.metrics.falls_detected is False
        assert result.metrics.circadian_pattern == [0.0] * 24
        assert result.alerts == []

    def test_reading_without_metrics_changes_nothing(self, engine, busy_day):
        result = engine.apply(busy_day, SensorReading(raw={"temperature": 31.2}), NOW)
        assert result.metrics == busy_day
        assert result.alerts == []


class TestResetDaily:
    """Tests for the daily reset."""

    def test_zeroes_tallies_and_keeps_estimates(self, engine, busy_day):
        reset = engine.reset_daily(busy_day)

        assert reset.gait_speed == busy_day.gait_speed
        assert reset.postural_stability == busy_day.postural_stability
        assert reset.tug_estimated == busy_day.tug_estimated

        assert reset.step_count == 0
        assert reset.average_cadence == 0
        assert reset.time_seated == 0
        assert reset.time_standing == 0
        assert reset.time_walking == 0
        assert reset.falls_detected is False
        assert reset.falls_timestamp is None
        assert reset.inactivity_episodes == 0
        assert reset.inactivity_avg_duration == 0
        assert reset.abrupt_transitions == 0
        assert reset.circadian_pattern == [0.0] * 24

    def test_is_idempotent(self, engine, busy_day):
        once = engine.reset_daily(busy_day)
        assert engine.reset_daily(once) == once

    def test_cadence_cold_starts_after_reset(self, engine, busy_day):
        reset = engine.reset_daily(busy_day)
        result = engine.apply(reset, reading(averageCadence=88.0), NOW)
        assert result.metrics.average_cadence == 88.0
