"""
Persistence backends for the shared config store.
"""

from .backend import StorageBackend, MemoryBackend
from .file_backend import FileBackend

__all__ = ["StorageBackend", "MemoryBackend", "FileBackend"]
