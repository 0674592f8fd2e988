from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..core.bridge.models import SenderCredential
from ..core.dispatch.models import DispatchPlan
from ..core.dispatch.service import DispatchService, get_dispatch_service
from ..core.dispatch.units import parse_usdc_amount
from ..core.recovery import ConfigurationError, ValidationError

router = APIRouter(prefix="/dispatch")


class PlanRequest(BaseModel):
    chains: List[str] = Field(..., min_length=1, description="Merchant chains, index-aligned with balances")
    balances: List[str] = Field(..., description="Current USDC balances")
    thresholds: List[str] = Field(..., description="Minimum USDC balance per chain")
    totalAmount: str = Field(..., description="Amount to distribute")
    unit: Literal["base", "usdc"] = Field("base", description="'base' = 6-decimal base units, 'usdc' = decimal USDC")


class PlanEntryModel(BaseModel):
    chain: str
    amount: str = Field(..., description="Amount in base units")


class PlanModel(BaseModel):
    entries: List[PlanEntryModel] = Field(..., min_length=1)

    def to_plan(self) -> DispatchPlan:
        return DispatchPlan.from_amounts(
            [e.chain for e in self.entries],
            [_to_int(e.amount, "amount") for e in self.entries],
        )


class QuoteRequest(BaseModel):
    plan: PlanModel
    sourceChain: str = Field(..., description="Chain the USDC is burned on")
    recipients: List[str] = Field(..., description="Recipient per plan entry")


class ExecuteRequest(QuoteRequest):
    sender: Optional[str] = Field(default=None, description="Signing wallet address (required unless dryRun)")
    keyId: Optional[str] = Field(default=None, description="Signer key handle")
    dryRun: bool = False


class MonitorRequest(BaseModel):
    messageIds: List[str] = Field(..., min_length=1, description="Execution ids or burn message hashes")


def _to_int(value: str, field_name: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field_name} must be an integer in base units: {value!r}", field_name=field_name) from exc


def _to_units(value: str, unit: str, field_name: str) -> int:
    if unit == "usdc":
        return parse_usdc_amount(value)
    return _to_int(value, field_name)


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (ValidationError, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=500, detail=f"Dispatch failed: {exc}")


@router.post("/plan")
async def plan_dispatch(
    request: PlanRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    try:
        plan = service.plan_dispatch(
            balances=[_to_units(b, request.unit, "balances") for b in request.balances],
            thresholds=[_to_units(t, request.unit, "thresholds") for t in request.thresholds],
            total_amount=_to_units(request.totalAmount, request.unit, "totalAmount"),
            chains=request.chains,
        )
        return {"success": True, "plan": plan.to_dict()}
    except Exception as exc:
        raise _http_error(exc)


@router.post("/quote")
async def quote_dispatch(
    request: QuoteRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    try:
        quotes = await service.quote_dispatch(request.plan.to_plan(), request.sourceChain, request.recipients)
        return {"success": True, "quotes": [q.to_dict() for q in quotes]}
    except Exception as exc:
        raise _http_error(exc)


@router.post("/execute")
async def execute_dispatch(
    request: ExecuteRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    credential = SenderCredential(address=request.sender, key_id=request.keyId) if request.sender else None
    try:
        result = await service.execute_dispatch(
            request.plan.to_plan(),
            request.sourceChain,
            request.recipients,
            credential,
            dry_run=request.dryRun,
        )
        return {"success": result.overall_success, "result": result.to_dict()}
    except Exception as exc:
        raise _http_error(exc)


@router.post("/monitor")
async def monitor_dispatch(
    request: MonitorRequest,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    try:
        summary = await service.monitor_dispatch(request.messageIds)
        return {"success": True, "summary": summary.to_dict()}
    except Exception as exc:
        raise _http_error(exc)


@router.get("/executions/{execution_id}")
async def get_execution(
    execution_id: str,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    execution = service.get_execution(execution_id)
    if execution is None:
        raise HTTPException(status_code=404, detail=f"Unknown execution: {execution_id}")
    return {"success": True, "execution": execution.to_dict()}


@router.post("/executions/{execution_id}/resume")
async def resume_execution(
    execution_id: str,
    service: DispatchService = Depends(get_dispatch_service),
) -> Dict[str, Any]:
    """Operator action for a stuck (burned, not minted) transfer."""
    try:
        execution = await service.resume_execution(execution_id)
        return {"success": execution.succeeded, "execution": execution.to_dict()}
    except Exception as exc:
        raise _http_error(exc)
