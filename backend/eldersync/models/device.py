"""
Device Models - IoT sensor devices bound to a patient.
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from .metrics import CamelModel


class DeviceCreate(CamelModel):
    """Body of ``POST /iot/devices``."""
    patient_id: Optional[str] = None
    device_name: Optional[str] = None


class Device(CamelModel):
    """Registered device. ``api_key`` is its only credential."""
    device_id: str
    api_key: str
    device_name: str
    patient_id: str
    user_id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class DeviceCredentials(CamelModel):
    """Returned once, at registration time."""
    device_id: str
    api_key: str
    device_name: str
    patient_id: str


class DeviceSummary(CamelModel):
    """Device as listed to its owner, with the key masked."""
    device_id: str
    device_name: str
    patient_id: str
    created_at: datetime
    api_key_hint: str

    @classmethod
    def from_device(cls, device: Device) -> "DeviceSummary":
        return cls(
            device_id=device.device_id,
            device_name=device.device_name,
            patient_id=device.patient_id,
            created_at=device.created_at,
            api_key_hint=f"****{device.api_key[-4:]}",
        )
