"""Storage module - key-value backends and the record stores built on them."""

from .interface import KeyValueStore
from .local_storage import LocalKeyValueStore
from .supabase_storage import SupabaseKeyValueStore
from .patient_store import PatientStore
from .logs import AlertLog, HistoryLog
from .user_storage import UserStorage

__all__ = [
    'KeyValueStore', 'LocalKeyValueStore', 'SupabaseKeyValueStore',
    'PatientStore', 'AlertLog', 'HistoryLog', 'UserStorage',
]
