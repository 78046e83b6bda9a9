"""Core module - metric fusion rules and domain exceptions."""

from .exceptions import ElderSyncError, Unauthorized, NotFound, BadInput, StoreFailure
from .fusion import MetricFusionEngine, FusionResult

__all__ = [
    'ElderSyncError', 'Unauthorized', 'NotFound', 'BadInput', 'StoreFailure',
    'MetricFusionEngine', 'FusionResult',
]
