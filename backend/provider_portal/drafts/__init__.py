"""Local draft persistence and auto-save"""
from .backends import KeyValueBackend, MemoryKeyValueBackend, MongoKeyValueBackend
from .serialization import FileAttachment, to_serializable, files_to_reattach
from .store import DraftStore
from .autosave import AutoSaveController, ResumeResult

__all__ = [
    "KeyValueBackend",
    "MemoryKeyValueBackend",
    "MongoKeyValueBackend",
    "FileAttachment",
    "to_serializable",
    "files_to_reattach",
    "DraftStore",
    "AutoSaveController",
    "ResumeResult",
]
