"""Provider provisioning API Routes"""
from fastapi import APIRouter, Depends
from pymongo.database import Database

from ..deps import get_db, get_admin_actor_dep
from ...domain.models import ActorContext
from ...services.provisioning_service import ProviderProvisioner
from .schemas import ProvisionRequest


router = APIRouter()


def get_provisioner(db: Database = Depends(get_db)) -> ProviderProvisioner:
    """Dependency to get ProviderProvisioner"""
    return ProviderProvisioner(db)


@router.post("")
async def provision_provider(
    request: ProvisionRequest,
    actor: ActorContext = Depends(get_admin_actor_dep),
    provisioner: ProviderProvisioner = Depends(get_provisioner)
):
    """
    Create the provider account for an approved application.
    
    Safe to call repeatedly: later calls report already_exists with the
    same provider.
    """
    return provisioner.provision(request.application_id, actor=actor).to_response()
