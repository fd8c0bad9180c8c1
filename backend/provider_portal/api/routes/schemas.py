"""Request/response schemas for the provider portal API"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ...domain.models import Application


class UpdateApplicationRequest(BaseModel):
    """PUT /applications body"""
    model_config = ConfigDict(populate_by_name=True)
    
    application_id: str = Field(..., alias="id", min_length=1)
    status: Optional[str] = None
    fields: Optional[Dict[str, Any]] = None
    note: Optional[str] = Field(None, max_length=5000)


class ProvisionRequest(BaseModel):
    """POST /providers body"""
    application_id: str = Field(..., min_length=1)


class IssueCompletionLinkRequest(BaseModel):
    """POST /completion-links body"""
    application_id: str = Field(..., min_length=1)
    provider_id: str = Field(..., min_length=1)
    provider_email: str = Field(..., min_length=3)
    missing_fields: List[str] = Field(default_factory=list)


class CompleteApplicationRequest(BaseModel):
    """POST /completion-links/complete body"""
    token: str = Field(..., min_length=1)
    updates: Dict[str, Any] = Field(default_factory=dict)


def application_view(application: Application) -> Dict[str, Any]:
    """Admin view of an application"""
    return application.model_dump(mode="json")


def public_application_view(application: Application) -> Dict[str, Any]:
    """What a completion-link holder may see"""
    return application.model_dump(
        mode="json",
        include={
            "application_id", "status", "full_name", "email", "phone", "address",
            "specialty", "license_type", "license_number", "license_state",
        }
    )
