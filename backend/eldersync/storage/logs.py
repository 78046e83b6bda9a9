"""
Alert and history logs - append-only, per-patient records.
"""

import logging
import uuid
from datetime import datetime
from typing import List, Optional, Tuple

from ..core.exceptions import NotFound
from ..models import Alert, HistoryRecord
from ..utils.clock import as_utc
from .interface import KeyValueStore
from .patient_store import dump_record

logger = logging.getLogger(__name__)


def alert_key(patient_id: str, alert_id: str) -> str:
    return f"alert:{patient_id}:{alert_id}"


def history_key(patient_id: str, record_id: str) -> str:
    return f"metrics:{patient_id}:{record_id}"


def new_record_id(now: datetime) -> str:
    """Unique storage id: ingest time in epoch millis plus a random suffix."""
    return f"{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"


class AlertLog:
    """Alerts raised for a patient, stored under ``alert:{patient_id}:{alert_id}``."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def append(self, patient_id: str, alert: Alert) -> None:
        await self.store.set(alert_key(patient_id, alert.id), dump_record(alert))

    async def extend(self, patient_id: str, alerts: List[Alert]) -> None:
        """Store several alerts in one batch write."""
        if not alerts:
            return
        await self.store.mset(
            [alert_key(patient_id, alert.id) for alert in alerts],
            [dump_record(alert) for alert in alerts],
        )

    async def list(self, patient_id: str) -> List[Alert]:
        """All alerts for the patient, newest first."""
        records = await self.store.get_by_prefix(f"alert:{patient_id}:")
        alerts = []
        for key, value in records.items():
            # Alerts written before ids were stored in the value
            value.setdefault("id", key.rsplit(":", 1)[-1])
            alerts.append(Alert.model_validate(value))
        alerts.sort(key=lambda alert: as_utc(alert.timestamp), reverse=True)
        return alerts

    async def acknowledge(self, patient_id: str, alert_id: str) -> Alert:
        """
        Mark an alert as acknowledged.

        Raises:
            NotFound: If the alert does not exist for this patient
        """
        value = await self.store.get(alert_key(patient_id, alert_id))
        if value is None:
            raise NotFound("Alert not found")
        value.setdefault("id", alert_id)
        alert = Alert.model_validate(value).model_copy(update={"acknowledged": True})
        await self.store.set(alert_key(patient_id, alert_id), dump_record(alert))
        logger.info(
            "Alert acknowledged",
            extra={"extra_fields": {"patient_id": patient_id, "alert_id": alert_id}},
        )
        return alert


class HistoryLog:
    """Ingested readings, stored under ``metrics:{patient_id}:{record_id}``."""

    def __init__(self, store: KeyValueStore, page_size: int = 100):
        self.store = store
        self.page_size = page_size

    async def append(self, record: HistoryRecord, record_id: Optional[str] = None) -> str:
        """Store a record and return its id."""
        record_id = record_id or new_record_id(record.timestamp)
        await self.store.set(history_key(record.patient_id, record_id), dump_record(record))
        return record_id

    async def list(
        self,
        patient_id: str,
        limit: Optional[int] = None,
    ) -> Tuple[List[HistoryRecord], int]:
        """
        Most recent records for the patient.

        Args:
            patient_id: Patient identifier
            limit: Page size (defaults to the configured page size)

        Returns:
            Tuple of (records newest first, total number of records)
        """
        limit = self.page_size if limit is None else limit
        records = await self.store.get_by_prefix(f"metrics:{patient_id}:")
        history = [HistoryRecord.model_validate(value) for value in records.values()]
        history.sort(key=lambda record: as_utc(record.timestamp), reverse=True)
        return history[:limit], len(history)
