"""
Device Registry - binds IoT sensor devices to the patient they report for.
"""

import hmac
import logging
import uuid
from typing import List, Optional

from ..core.exceptions import NotFound, Unauthorized
from ..models import Device, DeviceSummary
from ..storage.interface import KeyValueStore
from ..storage.patient_store import PatientStore, dump_record

logger = logging.getLogger(__name__)


def device_key(device_id: str) -> str:
    return f"device:{device_id}"


class DeviceRegistry:
    """Registers devices and authenticates their ingest calls."""

    def __init__(self, store: KeyValueStore, patients: PatientStore):
        self.store = store
        self.patients = patients

    async def register(
        self,
        user_id: str,
        patient_id: str,
        device_name: Optional[str] = None,
    ) -> Device:
        """
        Register a device for one of the caregiver's patients.

        Args:
            user_id: Owning caregiver
            patient_id: Patient the device reports for
            device_name: Optional label; defaults to the patient's name

        Returns:
            Device: The new device, including its secret key

        Raises:
            NotFound: If the patient does not exist for this user
        """
        patient = await self.patients.get(user_id, patient_id)

        device = Device(
            device_id=str(uuid.uuid4()),
            api_key=uuid.uuid4().hex,
            device_name=device_name or f"Sensor de {patient.name or patient_id}",
            patient_id=patient_id,
            user_id=user_id,
        )
        await self.store.set(device_key(device.device_id), dump_record(device))

        logger.info(
            "IoT device registered",
            extra={"extra_fields": {"device_id": device.device_id, "patient_id": patient_id}},
        )
        return device

    async def authenticate(self, device_id: Optional[str], api_key: Optional[str]) -> Device:
        """
        Resolve device credentials.

        Raises:
            Unauthorized: If a credential is missing, the device is unknown or the key differs
        """
        if not device_id or not api_key:
            logger.warning("IoT device call without credentials")
            raise Unauthorized("Device credentials not provided")

        value = await self.store.get(device_key(device_id))
        if value is None:
            logger.warning("Unknown IoT device", extra={"extra_fields": {"device_id": device_id}})
            raise Unauthorized("Device not authorized")

        device = Device.model_validate(value)
        if not hmac.compare_digest(device.api_key.encode("utf-8"), api_key.encode("utf-8")):
            logger.warning("IoT device key mismatch", extra={"extra_fields": {"device_id": device_id}})
            raise Unauthorized("Device not authorized")
        return device

    async def list_for_patient(self, user_id: str, patient_id: str) -> List[DeviceSummary]:
        """Devices bound to a patient, with keys masked."""
        await self.patients.get(user_id, patient_id)
        records = await self.store.get_by_prefix("device:")
        devices = [Device.model_validate(value) for value in records.values()]
        return [
            DeviceSummary.from_device(device)
            for device in devices
            if device.user_id == user_id and device.patient_id == patient_id
        ]

    async def revoke(self, user_id: str, device_id: str) -> None:
        """
        Delete a device so its key stops working.

        Raises:
            NotFound: If the device does not exist or belongs to another user
        """
        value = await self.store.get(device_key(device_id))
        if value is None or Device.model_validate(value).user_id != user_id:
            raise NotFound("Device not found")
        await self.store.delete(device_key(device_id))
        logger.info("IoT device revoked", extra={"extra_fields": {"device_id": device_id}})
