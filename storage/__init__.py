from .base import NoRowsError as NoRowsError
from .base import StorageBackend as StorageBackend
from .base import StorageError as StorageError
from .factory import get_storage_backend as get_storage_backend

__all__ = ["NoRowsError", "StorageBackend", "StorageError", "get_storage_backend"]
