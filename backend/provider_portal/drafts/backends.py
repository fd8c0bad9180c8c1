"""Key-value backends for local draft persistence

DraftStore only needs get/set/delete/keys over string values, which is what
browser localStorage offers. Any object with those four methods works.
"""
from typing import Dict, List, Optional, Protocol

from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from ..domain.errors import DraftQuotaExceededError, DraftStorageError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class KeyValueBackend(Protocol):
    """Minimal string key-value interface"""
    
    def get(self, key: str) -> Optional[str]: ...
    
    def set(self, key: str, value: str) -> None: ...
    
    def delete(self, key: str) -> None: ...
    
    def keys(self) -> List[str]: ...


class MemoryKeyValueBackend:
    """
    In-memory backend with an optional quota
    
    Size is counted in characters of key plus value, the way browsers
    account localStorage.
    """
    
    def __init__(self, quota_bytes: Optional[int] = None):
        self._data: Dict[str, str] = {}
        self.quota_bytes = quota_bytes
    
    def _size_with(self, key: str, value: str) -> int:
        total = sum(len(k) + len(v) for k, v in self._data.items() if k != key)
        return total + len(key) + len(value)
    
    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)
    
    def set(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            required = self._size_with(key, value)
            if required > self.quota_bytes:
                raise DraftQuotaExceededError(
                    "Local storage is full",
                    details={"key": key, "required_bytes": required, "quota_bytes": self.quota_bytes}
                )
        self._data[key] = value
    
    def delete(self, key: str) -> None:
        self._data.pop(key, None)
    
    def keys(self) -> List[str]:
        return list(self._data)


class MongoKeyValueBackend:
    """
    MongoDB-backed store, one namespace per browser profile
    
    Used when drafts have to outlive a single process, e.g. a kiosk install.
    """
    
    def __init__(self, db: Database, namespace: str, collection_name: str = "draft_storage"):
        self._collection: Collection = db[collection_name]
        self._collection.create_index([("namespace", 1), ("key", 1)], unique=True)
        self.namespace = namespace
    
    def _doc_id(self, key: str) -> str:
        return f"{self.namespace}:{key}"
    
    def get(self, key: str) -> Optional[str]:
        try:
            doc = self._collection.find_one({"_id": self._doc_id(key)})
        except PyMongoError as e:
            raise DraftStorageError("Draft storage unavailable", details={"reason": str(e)}) from e
        return doc["value"] if doc else None
    
    def set(self, key: str, value: str) -> None:
        try:
            self._collection.replace_one(
                {"_id": self._doc_id(key)},
                {"_id": self._doc_id(key), "namespace": self.namespace, "key": key, "value": value},
                upsert=True
            )
        except PyMongoError as e:
            raise DraftStorageError("Failed to write draft", details={"key": key, "reason": str(e)}) from e
    
    def delete(self, key: str) -> None:
        try:
            self._collection.delete_one({"_id": self._doc_id(key)})
        except PyMongoError as e:
            raise DraftStorageError("Failed to delete draft", details={"key": key, "reason": str(e)}) from e
    
    def keys(self) -> List[str]:
        try:
            cursor = self._collection.find({"namespace": self.namespace}, {"key": 1})
            return [doc["key"] for doc in cursor]
        except PyMongoError as e:
            raise DraftStorageError("Draft storage unavailable", details={"reason": str(e)}) from e
