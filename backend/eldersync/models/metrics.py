"""
Metric Models - Patient aggregate metrics, incoming sensor readings, alerts and
historical records.

Wire format is camelCase JSON; attributes are snake_case. Sensor values are
parsed leniently: a malformed number is treated as absent instead of rejecting
the whole reading.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Optional, Union

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

HOURS_PER_DAY = 24
LEGACY_DISPLAY_FORMAT = "%d/%m/%Y, %H:%M:%S"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _number_or_none(value: Any) -> Optional[float]:
    return value if _is_number(value) else None


def _number_or_zero(value: Any) -> float:
    return value if _is_number(value) else 0


def _flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if _is_number(value):
        return bool(value)
    return False


def _hourly_activity(value: Any) -> Union[float, List[float], None]:
    if _is_number(value):
        return value
    if isinstance(value, list):
        return [item if _is_number(item) else 0.0 for item in value]
    return None


def _instant(value: Any) -> Optional[datetime]:
    """Accept ISO instants, and the pt-BR display strings older records hold."""
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
        try:
            return datetime.strptime(value, LEGACY_DISPLAY_FORMAT)
        except ValueError:
            return None
    return None


SensorFloat = Annotated[Optional[float], BeforeValidator(_number_or_none)]
# Counts keep the number as sent; a fractional count is not truncated
SensorCount = Annotated[Optional[Union[int, float]], BeforeValidator(_number_or_none)]
MetricFloat = Annotated[float, BeforeValidator(_number_or_zero)]
MetricCount = Annotated[Union[int, float], BeforeValidator(_number_or_zero)]


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys, populated by either form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def empty_circadian_pattern() -> List[float]:
    return [0.0] * HOURS_PER_DAY


class PatientMetrics(CamelModel):
    """Running aggregate of a patient's mobility metrics."""

    step_count: MetricCount = 0
    average_cadence: MetricFloat = 0.0
    time_seated: MetricFloat = 0.0
    time_standing: MetricFloat = 0.0
    time_walking: MetricFloat = 0.0
    gait_speed: MetricFloat = 0.0
    postural_stability: MetricFloat = 0.0
    falls_detected: Annotated[bool, BeforeValidator(_flag)] = False
    falls_timestamp: Annotated[Optional[datetime], BeforeValidator(_instant)] = None
    inactivity_episodes: MetricCount = 0
    inactivity_avg_duration: MetricFloat = 0.0
    tug_estimated: MetricFloat = 0.0
    abrupt_transitions: MetricCount = 0
    circadian_pattern: List[float] = Field(default_factory=empty_circadian_pattern)

    @field_validator("circadian_pattern", mode="before")
    @classmethod
    def _fixed_length_pattern(cls, value: Any) -> List[float]:
        if not isinstance(value, list) or len(value) != HOURS_PER_DAY:
            return empty_circadian_pattern()
        return [item if _is_number(item) else 0.0 for item in value]


class SensorMetrics(CamelModel):
    """Partial metrics computed on the device. Every field is optional."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    step_count: SensorCount = None
    average_cadence: SensorFloat = None
    time_seated: SensorFloat = None
    time_standing: SensorFloat = None
    time_walking: SensorFloat = None
    gait_speed: SensorFloat = None
    postural_stability: SensorFloat = None
    fall_detected: Annotated[bool, BeforeValidator(_flag)] = False
    inactivity_episodes: SensorCount = None
    inactivity_avg_duration: SensorFloat = None
    tug_estimated: SensorFloat = None
    abrupt_transitions: SensorCount = None
    hourly_activity: Annotated[
        Union[float, List[float], None], BeforeValidator(_hourly_activity)
    ] = None


class SensorReading(CamelModel):
    """Body of ``POST /iot/metrics`` as sent by an ESP32 device."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    metrics: Optional[SensorMetrics] = None
    raw: Any = None
    timestamp: Optional[Union[int, float, str]] = None

    # Raw MPU6050 samples some firmware sends at top level instead of in ``raw``
    accel: Optional[Dict[str, Any]] = None
    gyro: Optional[Dict[str, Any]] = None
    temperature: Optional[float] = None

    _sent_metrics: Optional[Dict[str, Any]] = PrivateAttr(default=None)

    @model_validator(mode="wrap")
    @classmethod
    def _keep_sent_metrics(cls, data: Any, handler: Any) -> "SensorReading":
        reading = handler(data)
        if isinstance(data, dict) and isinstance(data.get("metrics"), dict):
            reading._sent_metrics = dict(data["metrics"])
        return reading

    @field_validator("metrics", mode="before")
    @classmethod
    def _metrics_object(cls, value: Any) -> Any:
        return value if isinstance(value, dict) or isinstance(value, SensorMetrics) else None

    @field_validator("timestamp", mode="before")
    @classmethod
    def _scalar(cls, value: Any) -> Any:
        return value if _is_number(value) or isinstance(value, str) else None

    @field_validator("temperature", mode="before")
    @classmethod
    def _temperature(cls, value: Any) -> Optional[float]:
        return _number_or_none(value)

    @field_validator("accel", "gyro", mode="before")
    @classmethod
    def _mapping(cls, value: Any) -> Any:
        return value if isinstance(value, dict) else None

    def sensor_metrics(self) -> SensorMetrics:
        return self.metrics if self.metrics is not None else SensorMetrics()

    def sent_metrics(self) -> Dict[str, Any]:
        """The ``metrics`` object exactly as the device sent it."""
        if self._sent_metrics is not None:
            return self._sent_metrics
        if self.metrics is not None:
            return self.metrics.model_dump(mode="json", by_alias=True, exclude_unset=True)
        return {}

    def raw_payload(self) -> Any:
        """Opaque raw payload stored with history and fall alerts."""
        if self.raw is not None:
            return self.raw
        samples = {
            key: value
            for key, value in (
                ("accel", self.accel),
                ("gyro", self.gyro),
                ("temperature", self.temperature),
            )
            if value is not None
        }
        return samples or None


class AlertType(str, Enum):
    """Kinds of alert raised while fusing readings."""
    FALL_DETECTED = "fall_detected"
    PROLONGED_INACTIVITY = "prolonged_inactivity"


class Alert(CamelModel):
    """An alert raised for a patient. Only ``acknowledged`` ever changes."""

    id: str
    type: AlertType
    timestamp: datetime
    acknowledged: bool = False
    duration: Optional[float] = None
    details: Optional[Any] = None


class HistoryRecord(CamelModel):
    """One ingested reading as received, stamped with the server time."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    device_id: str
    patient_id: str
    timestamp: datetime
    device_timestamp: Optional[Union[int, float, str]] = None
    metrics: Dict[str, Any] = Field(default_factory=dict)
    raw: Any = None
