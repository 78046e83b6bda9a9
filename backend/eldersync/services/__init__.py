"""Services module - device registry, ingest flow and application wiring."""

from .device_registry import DeviceRegistry
from .ingest import IngestService, IngestResult
from .context import AppContext, build_context

__all__ = ['DeviceRegistry', 'IngestService', 'IngestResult', 'AppContext', 'build_context']
