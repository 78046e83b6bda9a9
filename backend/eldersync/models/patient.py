"""
Patient Models - Defines the patient record owned by a caregiver.
"""

from datetime import datetime
from typing import Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .metrics import CamelModel, PatientMetrics


class PatientBase(CamelModel):
    """Fields a caregiver can set. Extra fields are stored verbatim."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class PatientCreate(PatientBase):
    """Patient creation payload."""
    name: str = Field(..., min_length=2)
    age: Optional[int] = Field(None, ge=1, le=120)
    metrics: Optional[PatientMetrics] = None


class PatientUpdate(PatientBase):
    """Patient update payload - all fields optional."""
    name: Optional[str] = Field(None, min_length=2)
    age: Optional[int] = Field(None, ge=1, le=120)
    metrics: Optional[PatientMetrics] = None


class Patient(PatientBase):
    """Stored patient record, holding the current metrics snapshot."""
    id: str
    name: Optional[str] = None
    age: Optional[int] = None
    metrics: PatientMetrics = Field(default_factory=PatientMetrics)
    last_update: Optional[datetime] = None
