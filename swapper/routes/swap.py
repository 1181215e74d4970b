import logging
from typing import Optional
from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from ..domain.errors import ErrorKind, InvalidInputError, SwapError, TRANSACTION_KINDS
from ..domain.models import SwapOutcome, SwapRequest, SwapState
from ..domain.tokens import DEFAULT_TOKENS, AliasTokens, checksum, is_address
from ..services.orchestrator import SwapOrchestrator
from ..services.session import SwapSession, owned_pools

logger = logging.getLogger(__name__)

router = APIRouter(tags=["swap"])

_STATUS_BY_KIND = {
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.TOKEN_NOT_IN_POOL: 400,
    ErrorKind.ESTIMATION_FAILED: 400,
    ErrorKind.INSUFFICIENT_BALANCE: 400,
    ErrorKind.POOL_NOT_FOUND: 404,
    ErrorKind.POOL_QUERY_FAILED: 502,
    ErrorKind.UNKNOWN: 500,
}


class SwapPreviewRequest(BaseModel):
    contract_address: str
    token_in: Optional[str] = None
    token_out: Optional[str] = None
    amount: Optional[str] = None
    client_id: str = "default"


class RetryRequest(BaseModel):
    contract_address: str


# ---------- per-app registries (app.state) ----------

def _session_for(request: Request, contract_address: str):
    def build():
        try:
            return request.app.state.session_factory(contract_address)
        except SwapError as e:
            raise HTTPException(400, e.to_payload())

    return request.app.state.sessions.get_or_create((contract_address or "").lower(), build)


def _orchestrator_for(request: Request, contract_address: str) -> SwapOrchestrator:
    def build():
        session = _session_for(request, contract_address)
        return SwapOrchestrator(session, request.app.state.history, request.app.state.aliases)

    return request.app.state.orchestrators.get_or_create((contract_address or "").lower(), build)


def _swap_session_for(request: Request, contract_address: str, client_id: str) -> SwapSession:
    def build():
        return SwapSession(_session_for(request, contract_address), request.app.state.aliases)

    key = ((contract_address or "").lower(), client_id)
    return request.app.state.swap_sessions.get_or_create(key, build)


def _outcome_or_raise(outcome: SwapOutcome) -> dict:
    if outcome.state == SwapState.CONFIRMED:
        return outcome.model_dump(mode="json")
    kind = ErrorKind(outcome.error_kind or ErrorKind.UNKNOWN.value)
    status = 502 if kind in TRANSACTION_KINDS else _STATUS_BY_KIND.get(kind, 500)
    payload = {
        "error_type": kind.value,
        "error_msg": outcome.error_msg,
        "details": outcome.error_details,
        "states": [s.value for s in outcome.states],
        "tx_hashes": outcome.tx_hashes,
        "retry_available": outcome.retry_available,
    }
    raise HTTPException(status_code=status, detail=payload)


# ---------- routes ----------

@router.get("/tokens")
def list_tokens(request: Request):
    aliases: AliasTokens = request.app.state.aliases
    return {
        "tokens": DEFAULT_TOKENS,
        "aliases": {"source": aliases.source, "wrapped": aliases.wrapped},
    }


@router.post("/swap/preview")
def swap_preview(req: SwapPreviewRequest, request: Request):
    swap_session = _swap_session_for(request, req.contract_address, req.client_id)
    preview = swap_session.update(token_in=req.token_in, token_out=req.token_out, amount=req.amount)
    out = preview.model_dump(mode="json")
    out["can_swap"] = preview.can_swap
    return out


@router.post("/swap/execute")
def swap_execute(req: SwapRequest, request: Request):
    orch = _orchestrator_for(request, req.contract_address)
    outcome = orch.execute(req)
    return _outcome_or_raise(outcome)


@router.post("/swap/retry")
def swap_retry(req: RetryRequest, request: Request):
    orch = _orchestrator_for(request, req.contract_address)
    try:
        outcome = orch.retry()
    except InvalidInputError as e:
        raise HTTPException(409, e.to_payload())
    return _outcome_or_raise(outcome)


@router.get("/swap/history")
def swap_history(request: Request):
    history = request.app.state.history
    return {"history": [e.model_dump(mode="json") for e in history.load()]}


@router.delete("/swap/history")
def clear_history(request: Request):
    request.app.state.history.clear()
    return {"history": []}


@router.post("/swap/history/{index}/use")
def use_history_entry(index: int, request: Request):
    history = request.app.state.history
    history.load()
    try:
        entry = history.get(index)
    except IndexError:
        raise HTTPException(404, f"no history entry at index {index}")
    orch = _orchestrator_for(request, entry.contract_address)
    req = orch.load_from_history(index)
    return {
        "request": req.model_dump(mode="json"),
        "history": [e.model_dump(mode="json") for e in history.entries],
    }


@router.get("/pools/owned")
def pools_owned(contract_address: str, request: Request, owner: Optional[str] = None):
    session = _session_for(request, contract_address)
    if owner is not None and not is_address(owner):
        raise HTTPException(400, {"error_type": ErrorKind.INVALID_INPUT.value, "error_msg": "Invalid owner address"})
    who = checksum(owner) if owner else session.account
    return {"owner": who, "pools": [row.model_dump(mode="json") for row in owned_pools(session, who)]}
