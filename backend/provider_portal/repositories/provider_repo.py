"""Provider Repository - Data access for provider accounts"""
from typing import Any, Dict, Optional
from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import to_document, strip_id
from ..domain.models import Provider
from ..utils.logger import get_logger
from ..utils.time import utc_now

logger = get_logger(__name__)


class ProviderRepository:
    """Repository for provider operations"""
    
    def __init__(self, db: Database):
        self._providers: Collection = db["providers"]
        self._ensure_indexes()
    
    def _ensure_indexes(self):
        """Unique keys back the one-provider-per-application rule"""
        self._providers.create_index("provider_id", unique=True)
        self._providers.create_index("application_id", unique=True)
        self._providers.create_index("provider_code", unique=True)
    
    def create(self, provider: Provider) -> Provider:
        """
        Insert a provider
        
        Raises:
            DuplicateKeyError: a provider already exists for the application
                (or the provider code collided)
        """
        doc = to_document(provider)
        doc["_id"] = provider.provider_id
        self._providers.insert_one(doc)
        logger.info(
            f"Created provider: {provider.provider_code}",
            extra={"application_id": provider.application_id, "provider_id": provider.provider_id}
        )
        return provider
    
    def get(self, provider_id: str) -> Optional[Provider]:
        doc = strip_id(self._providers.find_one({"provider_id": provider_id}))
        return Provider.model_validate(doc) if doc else None
    
    def get_by_application(self, application_id: str) -> Optional[Provider]:
        """Get the provider provisioned from an application"""
        doc = strip_id(self._providers.find_one({"application_id": application_id}))
        return Provider.model_validate(doc) if doc else None
    
    def code_exists(self, provider_code: str) -> bool:
        return self._providers.count_documents({"provider_code": provider_code}, limit=1) > 0
    
    def count_for_application(self, application_id: str) -> int:
        return self._providers.count_documents({"application_id": application_id})
    
    def update_fields(self, provider_id: str, updates: Dict[str, Any]) -> Optional[Provider]:
        """Set fields on a provider record"""
        updates = dict(updates)
        updates["updated_at"] = utc_now()
        result = self._providers.find_one_and_update(
            {"provider_id": provider_id},
            {"$set": updates},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            return None
        return Provider.model_validate(strip_id(result))
