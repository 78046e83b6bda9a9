"""
Patient Store - CRUD over patient records, namespaced per caregiver.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional

from ..core.exceptions import NotFound
from ..models import Patient, PatientCreate, PatientMetrics, PatientUpdate
from .interface import KeyValueStore

logger = logging.getLogger(__name__)


def patient_key(user_id: str, patient_id: str) -> str:
    return f"user:{user_id}:patient:{patient_id}"


def dump_record(model) -> dict:
    """Serialise a model the way records are stored: camelCase, no nulls."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


class PatientStore:
    """
    Manages patient records.
    Each record lives under ``user:{user_id}:patient:{patient_id}``.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    async def list(self, user_id: str) -> List[Patient]:
        """All patients owned by ``user_id``."""
        records = await self.store.get_by_prefix(f"user:{user_id}:patient:")
        return [Patient.model_validate(value) for value in records.values()]

    async def find(self, user_id: str, patient_id: str) -> Optional[Patient]:
        """Patient owned by ``user_id``, or None."""
        value = await self.store.get(patient_key(user_id, patient_id))
        if value is None:
            return None
        return Patient.model_validate(value)

    async def get(self, user_id: str, patient_id: str) -> Patient:
        """
        Patient owned by ``user_id``.

        Raises:
            NotFound: If the patient does not exist for this user
        """
        patient = await self.find(user_id, patient_id)
        if patient is None:
            logger.info("Patient not found", extra={"extra_fields": {"patient_id": patient_id}})
            raise NotFound("Patient not found")
        return patient

    async def create(self, user_id: str, data: PatientCreate) -> Patient:
        """Create a patient with a fresh id."""
        fields = data.model_dump(exclude_none=True)
        for reserved in ("id", "last_update", "lastUpdate"):
            fields.pop(reserved, None)
        fields.setdefault("metrics", PatientMetrics())
        patient = Patient(
            id=str(uuid.uuid4()),
            last_update=datetime.now(timezone.utc),
            **fields,
        )
        await self.save(user_id, patient)
        logger.info("Patient created", extra={"extra_fields": {"patient_id": patient.id}})
        return patient

    async def update(self, user_id: str, patient_id: str, updates: PatientUpdate) -> Patient:
        """Merge ``updates`` into an existing patient."""
        patient = await self.get(user_id, patient_id)
        merged = {**patient.model_dump(), **updates.model_dump(exclude_unset=True)}
        merged.pop("lastUpdate", None)
        merged["id"] = patient_id
        merged["last_update"] = datetime.now(timezone.utc)
        updated = Patient.model_validate(merged)
        await self.save(user_id, updated)
        logger.info("Patient updated", extra={"extra_fields": {"patient_id": patient_id}})
        return updated

    async def save(self, user_id: str, patient: Patient) -> None:
        """Write the whole record (last write wins)."""
        await self.store.set(patient_key(user_id, patient.id), dump_record(patient))

    async def delete(self, user_id: str, patient_id: str) -> None:
        """Delete a patient. Its history, alerts and devices are left in place."""
        await self.get(user_id, patient_id)
        await self.store.delete(patient_key(user_id, patient_id))
        logger.info("Patient deleted", extra={"extra_fields": {"patient_id": patient_id}})
