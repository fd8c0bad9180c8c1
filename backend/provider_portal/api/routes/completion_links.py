"""Completion Link API Routes

Issuing and listing are admin actions. Validating and completing are public;
the token is the credential.
"""
from fastapi import APIRouter, Depends, Query, status
from pymongo.database import Database

from ..deps import get_db, get_admin_actor_dep
from ...domain.models import ActorContext
from ...services.completion_link_service import CompletionLinkService
from ...services.notification_service import NotificationService
from ...utils.time import format_iso, utc_now
from .schemas import IssueCompletionLinkRequest, CompleteApplicationRequest, public_application_view


router = APIRouter()


def get_completion_link_service(db: Database = Depends(get_db)) -> CompletionLinkService:
    """Dependency to get CompletionLinkService"""
    return CompletionLinkService(db)


@router.post("", status_code=status.HTTP_201_CREATED)
async def issue_completion_link(
    request: IssueCompletionLinkRequest,
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: CompletionLinkService = Depends(get_completion_link_service)
):
    """
    Issue a completion link and email it to the provider.
    
    Rejected while another unused, unexpired link exists for the application.
    """
    link = service.issue(
        application_id=request.application_id,
        provider_id=request.provider_id,
        provider_email=request.provider_email,
        missing_fields=request.missing_fields,
        actor=actor
    )
    return {
        "success": True,
        "token": link.token,
        "completion_url": NotificationService.completion_url(link.token),
        "expires_at": format_iso(link.expires_at),
        "missing_fields": link.missing_fields,
    }


@router.get("")
async def list_completion_links(
    application_id: str = Query(..., min_length=1),
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: CompletionLinkService = Depends(get_completion_link_service)
):
    """Links issued for an application with their computed state."""
    items = service.list_for_application(application_id)
    return {"items": items, "total": len(items)}


@router.get("/validate")
async def validate_completion_link(
    token: str = Query(..., min_length=1),
    service: CompletionLinkService = Depends(get_completion_link_service)
):
    """Check a token before showing the completion form."""
    validation = service.validate(token)
    link = validation.link
    return {
        "valid": True,
        "application_id": link.application_id,
        "provider_id": link.provider_id,
        "provider_email": link.provider_email,
        "missing_fields": link.missing_fields,
        "expires_at": format_iso(link.expires_at),
        "application": public_application_view(validation.application),
    }


@router.post("/complete")
async def complete_application(
    request: CompleteApplicationRequest,
    service: CompletionLinkService = Depends(get_completion_link_service)
):
    """
    Submit the requested fields.
    
    Every requested field must be present; partial submissions are rejected
    and the link stays usable.
    """
    application = service.consume(request.token, request.updates)
    return {
        "success": True,
        "application_id": application.application_id,
        "completed_at": format_iso(utc_now()),
    }
