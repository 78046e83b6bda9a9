"""Models module."""

from .user import User, SignupRequest, LoginRequest, Token, TokenData
from .metrics import (
    PatientMetrics, SensorMetrics, SensorReading, Alert, AlertType, HistoryRecord,
)
from .patient import Patient, PatientCreate, PatientUpdate
from .device import Device, DeviceCreate, DeviceCredentials, DeviceSummary

__all__ = [
    'User', 'SignupRequest', 'LoginRequest', 'Token', 'TokenData',
    'PatientMetrics', 'SensorMetrics', 'SensorReading', 'Alert', 'AlertType', 'HistoryRecord',
    'Patient', 'PatientCreate', 'PatientUpdate',
    'Device', 'DeviceCreate', 'DeviceCredentials', 'DeviceSummary',
]
