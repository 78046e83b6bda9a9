"""API module."""

from .auth import router as auth_router
from .patients import router as patients_router
from .iot import router as iot_router
from .health import router as health_router

__all__ = ['auth_router', 'patients_router', 'iot_router', 'health_router']
