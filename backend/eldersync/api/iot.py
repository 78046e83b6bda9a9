"""
IoT API endpoints - ESP32 / MPU6050 sensor devices.

Device calls authenticate with the ``X-Device-Id`` and ``X-Device-Key``
headers; device management uses the caregiver's bearer token.
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from pydantic import ValidationError

from ..core.exceptions import BadInput
from ..models import DeviceCreate, DeviceCredentials, SensorReading
from ..services.context import AppContext
from .deps import get_context, get_current_user_id

router = APIRouter(prefix="/iot", tags=["iot"])
logger = logging.getLogger(__name__)


def parse_reading(body: bytes) -> SensorReading:
    """
    Parse a device body; an empty body or JSON null is a reading with no metrics.

    Raises:
        BadInput: If the body is not JSON or not a JSON object
    """
    if not body.strip():
        return SensorReading()
    try:
        payload = json.loads(body)
    except ValueError as e:
        raise BadInput("Invalid JSON body") from e
    if payload is None:
        return SensorReading()
    try:
        return SensorReading.model_validate(payload)
    except ValidationError as e:
        raise BadInput("Reading must be a JSON object") from e


@router.post("/metrics")
async def receive_metrics(
    request: Request,
    x_device_id: Optional[str] = Header(None),
    x_device_key: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
):
    """
    Receive a reading from a sensor device.

    Credentials are checked before the body is parsed.

    Returns:
        The history record id and the headline values of the updated metrics
    """
    device = await context.devices.authenticate(x_device_id, x_device_key)
    reading = parse_reading(await request.body())
    result = await context.ingest.ingest_for(device, reading)
    return {
        "success": True,
        "metricId": result.metric_id,
        "updatedMetrics": result.summary(),
    }


@router.post("/reset-daily")
async def reset_daily(
    x_device_id: Optional[str] = Header(None),
    x_device_key: Optional[str] = Header(None),
    context: AppContext = Depends(get_context),
):
    """Reset the daily metrics of the device's patient."""
    await context.ingest.reset_daily(x_device_id, x_device_key)
    return {"success": True, "message": "Daily metrics reset"}


@router.post("/devices")
async def register_device(
    payload: DeviceCreate,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """
    Register a device for one of the caregiver's patients.

    The api key is only ever returned by this call.
    """
    if not payload.patient_id:
        raise BadInput("patientId is required")

    logger.info("Registering IoT device", extra={"extra_fields": {"user_id": user_id, "patient_id": payload.patient_id}})
    device = await context.devices.register(user_id, payload.patient_id, payload.device_name)
    return {
        "device": DeviceCredentials(
            device_id=device.device_id,
            api_key=device.api_key,
            device_name=device.device_name,
            patient_id=device.patient_id,
        ),
        "instructions": "Use these values in the ESP32 firmware",
    }


@router.get("/devices")
async def list_devices(
    patient_id: str = Query(..., alias="patientId"),
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Devices bound to a patient (keys masked)."""
    return {"devices": await context.devices.list_for_patient(user_id, patient_id)}


@router.delete("/devices/{device_id}")
async def revoke_device(
    device_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Revoke a device; its key stops working immediately."""
    await context.devices.revoke(user_id, device_id)
    return {"success": True}
