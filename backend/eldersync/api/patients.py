"""
Patients API endpoints - patient CRUD, metric history and alerts.
"""

import logging

from fastapi import APIRouter, Depends, status

from ..models import PatientCreate, PatientUpdate
from ..services.context import AppContext
from .deps import get_context, get_current_user_id

router = APIRouter(prefix="/patients", tags=["patients"])
logger = logging.getLogger(__name__)


@router.get("")
async def list_patients(
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """List all patients of the current caregiver."""
    patients = await context.patients.list(user_id)
    logger.info("Patients listed", extra={"extra_fields": {"user_id": user_id, "count": len(patients)}})
    return {"patients": patients}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_patient(
    payload: PatientCreate,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Add a patient."""
    patient = await context.patients.create(user_id, payload)
    return {"patient": patient}


@router.get("/{patient_id}")
async def get_patient(
    patient_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Get one patient with its current metrics."""
    return {"patient": await context.patients.get(user_id, patient_id)}


@router.put("/{patient_id}")
async def update_patient(
    patient_id: str,
    payload: PatientUpdate,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Update an existing patient."""
    patient = await context.patients.update(user_id, patient_id, payload)
    return {"patient": patient}


@router.delete("/{patient_id}")
async def delete_patient(
    patient_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Remove a patient."""
    await context.patients.delete(user_id, patient_id)
    return {"success": True, "message": "Patient removed"}


@router.get("/{patient_id}/metrics")
async def get_patient_metrics(
    patient_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """
    Historical readings of a patient, newest first.

    Returns:
        The most recent page of records and the total number stored
    """
    await context.patients.get(user_id, patient_id)
    records, total = await context.history.list(patient_id)
    logger.info(
        "Metric history fetched",
        extra={"extra_fields": {"patient_id": patient_id, "count": len(records), "total": total}},
    )
    return {"metrics": records, "total": total}


@router.get("/{patient_id}/alerts")
async def get_patient_alerts(
    patient_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Alerts raised for a patient, newest first."""
    await context.patients.get(user_id, patient_id)
    return {"alerts": await context.alerts.list(patient_id)}


@router.post("/{patient_id}/alerts/{alert_id}/acknowledge")
async def acknowledge_alert(
    patient_id: str,
    alert_id: str,
    user_id: str = Depends(get_current_user_id),
    context: AppContext = Depends(get_context),
):
    """Mark an alert as seen by the caregiver."""
    await context.patients.get(user_id, patient_id)
    return {"alert": await context.alerts.acknowledge(patient_id, alert_id)}
