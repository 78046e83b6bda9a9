"""
Ingest Service - applies device readings to patient records.

Flow for each reading: authenticate the device, load its patient, fuse the
reading into the patient's metrics, then write the history record, the
patient and any alerts. The writes are not transactional; a failure after
the patient write leaves the earlier writes in place.

Read-modify-write of one patient is serialised by a per-patient lock inside
this process only. Concurrent ingests handled by different processes can
still overwrite each other (last write wins).
"""

import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional

from ..core.exceptions import NotFound
from ..core.fusion import MetricFusionEngine
from ..models import Alert, AlertType, Device, HistoryRecord, Patient, PatientMetrics, SensorReading
from ..storage.logs import AlertLog, HistoryLog
from ..storage.patient_store import PatientStore
from ..utils.clock import now_in
from .device_registry import DeviceRegistry

logger = logging.getLogger(__name__)


def round_half_up(value: float, places: int = 0) -> float:
    """Round with halves away from zero, as the device firmware displays values."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


@dataclass
class IngestResult:
    """What one accepted reading produced."""
    metric_id: str
    patient_id: str
    metrics: PatientMetrics
    alerts: List[Alert] = field(default_factory=list)

    def summary(self) -> dict:
        """Headline values echoed back to the device."""
        return {
            "stepCount": self.metrics.step_count,
            "averageCadence": round_half_up(self.metrics.average_cadence, 1),
            "gaitSpeed": round_half_up(self.metrics.gait_speed, 2),
            "posturalStability": int(round_half_up(self.metrics.postural_stability)),
        }


class IngestService:
    """Device-facing operations: metric ingest and daily reset."""

    def __init__(
        self,
        registry: DeviceRegistry,
        patients: PatientStore,
        history: HistoryLog,
        alerts: AlertLog,
        engine: Optional[MetricFusionEngine] = None,
        timezone_name: str = "UTC",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the ingest service.

        Args:
            registry: Device registry used to authenticate calls
            patients: Patient store
            history: History log for raw readings
            alerts: Alert log
            engine: Fusion engine (a default one is created if omitted)
            timezone_name: IANA zone whose wall-clock hour picks the circadian bucket
            clock: Optional time source returning aware datetimes (used by tests)
        """
        self.registry = registry
        self.patients = patients
        self.history = history
        self.alerts = alerts
        self.engine = engine or MetricFusionEngine()
        self.clock = clock or (lambda: now_in(timezone_name))
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _patient_lock(self, patient_id: str) -> asyncio.Lock:
        lock = self._locks.get(patient_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[patient_id] = lock
        return lock

    async def _load_patient(self, device: Device) -> Patient:
        patient = await self.patients.find(device.user_id, device.patient_id)
        if patient is None:
            logger.error(
                "Patient not found for device",
                extra={"extra_fields": {"device_id": device.device_id, "patient_id": device.patient_id}},
            )
            raise NotFound("Patient not found")
        return patient

    async def ingest(
        self,
        device_id: Optional[str],
        api_key: Optional[str],
        reading: SensorReading,
    ) -> IngestResult:
        """
        Apply one reading from a device.

        Raises:
            Unauthorized: If the device credentials are missing or invalid
            NotFound: If the device's patient no longer exists
        """
        device = await self.registry.authenticate(device_id, api_key)
        return await self.ingest_for(device, reading)

    async def ingest_for(self, device: Device, reading: SensorReading) -> IngestResult:
        """
        Apply one reading from an already authenticated device.

        Raises:
            NotFound: If the device's patient no longer exists
        """
        logger.info("Reading received from device", extra={"extra_fields": {"device_id": device.device_id}})

        async with self._patient_lock(device.patient_id):
            patient = await self._load_patient(device)
            now = self.clock()
            fused = self.engine.apply(patient.metrics, reading, now)

            record = HistoryRecord(
                device_id=device.device_id,
                patient_id=device.patient_id,
                timestamp=now,
                device_timestamp=reading.timestamp,
                metrics=reading.sent_metrics(),
                raw=reading.raw_payload(),
            )
            metric_id = await self.history.append(record)

            await self.patients.save(
                device.user_id,
                patient.model_copy(update={"metrics": fused.metrics, "last_update": now}),
            )

            await self.alerts.extend(device.patient_id, fused.alerts)
            for alert in fused.alerts:
                if alert.type == AlertType.FALL_DETECTED:
                    logger.warning("ALERT: fall detected", extra={"extra_fields": {"patient_id": device.patient_id}})
                else:
                    logger.warning(
                        "ALERT: prolonged inactivity",
                        extra={"extra_fields": {"patient_id": device.patient_id, "duration": alert.duration}},
                    )

        return IngestResult(
            metric_id=metric_id,
            patient_id=device.patient_id,
            metrics=fused.metrics,
            alerts=fused.alerts,
        )

    async def reset_daily(self, device_id: Optional[str], api_key: Optional[str]) -> PatientMetrics:
        """
        Zero the daily tallies of the device's patient.

        Raises:
            Unauthorized: If the device credentials are missing or invalid
            NotFound: If the device's patient no longer exists
        """
        device = await self.registry.authenticate(device_id, api_key)

        async with self._patient_lock(device.patient_id):
            patient = await self._load_patient(device)
            metrics = self.engine.reset_daily(patient.metrics)
            await self.patients.save(
                device.user_id,
                patient.model_copy(update={"metrics": metrics, "last_update": self.clock()}),
            )

        logger.info("Daily metrics reset", extra={"extra_fields": {"patient_id": device.patient_id}})
        return metrics
