"""Application API Routes"""
from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from pymongo.database import Database

from ..deps import get_db, get_admin_actor_dep
from ...domain.models import ActorContext, ApplicationSubmission
from ...services.application_service import ApplicationService
from .schemas import UpdateApplicationRequest, application_view


router = APIRouter()


def get_application_service(db: Database = Depends(get_db)) -> ApplicationService:
    """Dependency to get ApplicationService"""
    return ApplicationService(db)


@router.post("", status_code=status.HTTP_201_CREATED)
def submit_application(
    request: ApplicationSubmission,
    service: ApplicationService = Depends(get_application_service)
):
    """
    Submit a completed application.
    
    Runs document generation (30s limit). On timeout nothing is stored and
    the applicant has to submit again.
    """
    application = service.submit_application(request)
    return {
        "success": True,
        "application_id": application.application_id,
        "status": application.status.value,
        "documents": sorted(application.documents),
    }


@router.get("")
async def list_applications(
    status_filter: Optional[str] = Query(None, alias="status"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: ApplicationService = Depends(get_application_service)
):
    """List applications, newest first."""
    items, total = service.list_applications(status_filter, skip=skip, limit=limit)
    return {
        "items": [application_view(a) for a in items],
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.put("")
async def update_application(
    request: UpdateApplicationRequest,
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: ApplicationService = Depends(get_application_service)
):
    """
    Update status, editable fields and/or add a note.
    
    Moving an application into approved provisions its provider account.
    Re-saving an approved application does not.
    """
    result = service.update_application(
        request.application_id,
        actor,
        status=request.status,
        fields=request.fields,
        note=request.note
    )
    return {
        "success": True,
        "application": application_view(result.application),
        "previous_status": result.previous_status.value,
        "entered_approved": result.entered_approved,
        "provisioning": result.provisioning.to_response() if result.provisioning else None,
        "provisioning_error": result.provisioning_error,
    }


@router.get("/{application_id}")
async def get_application(
    application_id: str,
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: ApplicationService = Depends(get_application_service)
):
    """Get an application by ID"""
    return application_view(service.get_application(application_id))


@router.get("/{application_id}/activity")
async def get_application_activity(
    application_id: str,
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    actor: ActorContext = Depends(get_admin_actor_dep),
    service: ApplicationService = Depends(get_application_service)
):
    """Activity log (audit events), newest first."""
    events, total = service.get_activity(application_id, skip=skip, limit=limit)
    return {
        "items": [e.model_dump(mode="json") for e in events],
        "total": total,
        "skip": skip,
        "limit": limit
    }
