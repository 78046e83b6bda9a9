"""
Metric Fusion Engine - Merges sensor readings into a patient's running metrics.

The engine is pure: it reads the current snapshot and a reading and returns a
new snapshot plus the alerts the reading raises. Persisting either is the
caller's job (see ``services.ingest``).
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, List, Optional, Tuple

from ..models.metrics import (
    HOURS_PER_DAY,
    Alert,
    AlertType,
    PatientMetrics,
    SensorMetrics,
    SensorReading,
    empty_circadian_pattern,
)

# (weight kept by the running value, weight given to the new sample)
DEFAULT_SMOOTHING = (0.7, 0.3)
STABILITY_SMOOTHING = (0.8, 0.2)


@dataclass
class FusionResult:
    """Outcome of fusing one reading."""
    metrics: PatientMetrics
    alerts: List[Alert] = field(default_factory=list)


def smooth(
    current: float,
    sample: Optional[float],
    weights: Tuple[float, float] = DEFAULT_SMOOTHING,
) -> float:
    """
    Exponentially smooth ``sample`` into ``current``.

    A zero running value is seeded with the sample instead of diluting it.
    An absent sample leaves the running value as is.
    """
    if sample is None:
        return current
    if not current:
        return sample
    retained, gained = weights
    return current * retained + sample * gained


def accumulate(current: float, increment: Optional[float]) -> float:
    return current + (increment or 0)


def update_circadian_pattern(
    pattern: List[float],
    hourly_activity: Any,
    hour: int,
) -> List[float]:
    """
    Fold ``hourly_activity`` into the 24-bucket activity histogram.

    A full-day list replaces the histogram; a scalar is added to the bucket of
    ``hour``; anything else leaves it unchanged.
    """
    if isinstance(hourly_activity, list):
        if len(hourly_activity) == HOURS_PER_DAY:
            return list(hourly_activity)
        return list(pattern)

    updated = list(pattern) if len(pattern) == HOURS_PER_DAY else empty_circadian_pattern()
    if isinstance(hourly_activity, (int, float)) and not isinstance(hourly_activity, bool):
        updated[hour % HOURS_PER_DAY] += hourly_activity
    return updated


def detect_alerts(metrics: SensorMetrics, raw: Any, now: datetime) -> List[Alert]:
    """Alerts raised by a single reading, independent of prior state."""
    alerts: List[Alert] = []

    if metrics.fall_detected:
        alerts.append(Alert(
            id=str(uuid.uuid4()),
            type=AlertType.FALL_DETECTED,
            timestamp=now,
            details={"raw": raw},
        ))

    if metrics.inactivity_episodes and metrics.inactivity_episodes > 0:
        alerts.append(Alert(
            id=str(uuid.uuid4()),
            type=AlertType.PROLONGED_INACTIVITY,
            timestamp=now,
            duration=metrics.inactivity_avg_duration or 0,
        ))

    return alerts


class MetricFusionEngine:
    """Stateless rules for updating and resetting ``PatientMetrics``."""

    def apply(
        self,
        current: Optional[PatientMetrics],
        reading: SensorReading,
        now: datetime,
    ) -> FusionResult:
        """
        Fuse a reading into the current metrics.

        Args:
            current: Current snapshot, or None for a patient with no metrics yet
            reading: Reading received from a device; any field may be absent
            now: Server time of ingestion, in the zone used for hour buckets

        Returns:
            FusionResult: next snapshot and the alerts to record
        """
        current = current or PatientMetrics()
        sample = reading.sensor_metrics()

        tug = current.tug_estimated
        if sample.tug_estimated is not None and sample.tug_estimated > 0:
            tug = sample.tug_estimated

        next_metrics = PatientMetrics(
            step_count=accumulate(current.step_count, sample.step_count),
            average_cadence=smooth(current.average_cadence, sample.average_cadence),
            time_seated=accumulate(current.time_seated, sample.time_seated),
            time_standing=accumulate(current.time_standing, sample.time_standing),
            time_walking=accumulate(current.time_walking, sample.time_walking),
            gait_speed=smooth(current.gait_speed, sample.gait_speed),
            postural_stability=smooth(
                current.postural_stability, sample.postural_stability, STABILITY_SMOOTHING
            ),
            falls_detected=current.falls_detected or sample.fall_detected,
            falls_timestamp=now if sample.fall_detected else current.falls_timestamp,
            inactivity_episodes=accumulate(current.inactivity_episodes, sample.inactivity_episodes),
            inactivity_avg_duration=smooth(
                current.inactivity_avg_duration, sample.inactivity_avg_duration
            ),
            tug_estimated=tug,
            abrupt_transitions=accumulate(current.abrupt_transitions, sample.abrupt_transitions),
            circadian_pattern=update_circadian_pattern(
                current.circadian_pattern, sample.hourly_activity, now.hour
            ),
        )

        return FusionResult(
            metrics=next_metrics,
            alerts=detect_alerts(sample, reading.raw_payload(), now),
        )

    def reset_daily(self, current: Optional[PatientMetrics]) -> PatientMetrics:
        """
        Zero the daily tallies.

        Gait speed, postural stability and the TUG estimate are physiological
        estimates rather than counts, so they carry over to the next day.
        """
        current = current or PatientMetrics()
        return PatientMetrics(
            gait_speed=current.gait_speed,
            postural_stability=current.postural_stability,
            tug_estimated=current.tug_estimated,
        )
