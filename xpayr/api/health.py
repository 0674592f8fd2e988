from typing import Any, Dict

from fastapi import APIRouter, Depends

from ..config import settings
from ..core.dispatch.service import DispatchService, get_dispatch_service

router = APIRouter()


@router.get("/healthz")
async def health_check(service: DispatchService = Depends(get_dispatch_service)) -> Dict[str, Any]:
    """Liveness plus a summary of the loaded configuration"""
    return {
        "status": "healthy",
        "network": settings.network,
        "chains": len(service.chains),
        "execution_enabled": service.orchestrator.executor is not None,
        "attestation_api": settings.resolve_attestation_base_url(),
    }


@router.get("/chains")
async def list_chains(service: DispatchService = Depends(get_dispatch_service)) -> Dict[str, Any]:
    return {
        "network": settings.network,
        "chains": [chain.to_dict() for chain in service.chains],
    }
