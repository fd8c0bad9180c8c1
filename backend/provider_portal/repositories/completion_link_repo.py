"""Completion Link Repository - Data access for completion tokens"""
from datetime import datetime
from typing import List, Optional
from pymongo import DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database

from .mongo_client import to_document, strip_id
from ..domain.models import CompletionLink
from ..utils.logger import get_logger, mask_token
from ..utils.time import has_expired

logger = get_logger(__name__)


class CompletionLinkRepository:
    """Repository for completion link operations"""
    
    def __init__(self, db: Database):
        self._links: Collection = db["completion_links"]
        self._links.create_index("token", unique=True)
        self._links.create_index("application_id")
    
    def create(self, link: CompletionLink) -> CompletionLink:
        """Insert a completion link"""
        doc = to_document(link)
        doc["_id"] = link.token
        self._links.insert_one(doc)
        logger.info(
            "Stored completion link",
            extra={"application_id": link.application_id, "token_id": mask_token(link.token)}
        )
        return link
    
    def get(self, token: str) -> Optional[CompletionLink]:
        """Get link by token"""
        doc = strip_id(self._links.find_one({"token": token}))
        return CompletionLink.model_validate(doc) if doc else None
    
    def list_for_application(self, application_id: str) -> List[CompletionLink]:
        """All links for an application, newest first"""
        cursor = self._links.find({"application_id": application_id}).sort("issued_at", DESCENDING)
        return [CompletionLink.model_validate(strip_id(doc)) for doc in cursor]
    
    def mark_used(
        self,
        token: str,
        used_at: datetime,
        submitted_fields: List[str]
    ) -> Optional[CompletionLink]:
        """
        Set used_at exactly once
        
        Returns:
            The updated link, or None if the token was already consumed
        """
        result = self._links.find_one_and_update(
            {"token": token, "used_at": None},
            {"$set": {"used_at": used_at, "submitted_fields": submitted_fields}},
            return_document=ReturnDocument.AFTER
        )
        if result is None:
            return None
        return CompletionLink.model_validate(strip_id(result))
    
    def unmark_used(self, token: str) -> None:
        """Undo mark_used after a failed write of the submitted fields"""
        self._links.update_one(
            {"token": token},
            {"$set": {"used_at": None, "submitted_fields": []}}
        )
    
    def purge_expired(self, now: datetime) -> int:
        """
        Delete unused links past their expiry
        
        Expiry is evaluated here rather than in the query so stored naive and
        aware datetimes compare the same way.
        """
        expired_tokens = []
        for doc in self._links.find({"used_at": None}, {"token": 1, "expires_at": 1}):
            if has_expired(doc.get("expires_at"), now):
                expired_tokens.append(doc["token"])
        
        if not expired_tokens:
            return 0
        
        result = self._links.delete_many({"token": {"$in": expired_tokens}})
        logger.info(f"Purged {result.deleted_count} expired completion links")
        return result.deleted_count
