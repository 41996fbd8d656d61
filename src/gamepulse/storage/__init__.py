from .types import StorageType
from .storage import RecordStore
from .factory import get_storage

__all__ = ["StorageType", "RecordStore", "get_storage"]
