"""
Swap orchestrator: a sequential state machine

    Idle -> Validating -> [Converting] -> [AwaitingApproval] -> Submitting -> Confirmed
                     \\___________________ any stage ___________________/-> Failed

Each stage is a method returning a Transition (next state, or Failed plus a
categorized SwapError). Remote-call exceptions are caught inside the stage
that issued the call; nothing is retried automatically. A failed request can
be retried once by hand, starting again from Validating.
"""

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from ..adapters.base import SwapperSession
from ..domain.errors import (
    ApprovalNotEffectiveError,
    ConversionIncompleteError,
    InsufficientBalanceError,
    InvalidInputError,
    PoolNotFoundError,
    PoolQueryFailedError,
    SwapError,
    SwapRejectedError,
    UnknownSwapError,
)
from ..domain.models import (
    BalanceView,
    PoolResolution,
    SwapHistoryEntry,
    SwapOutcome,
    SwapRequest,
    SwapState,
)
from ..domain.tokens import AliasTokens, checksum, from_raw, same_address, to_raw, validate_request
from .balances import compute_balance
from .estimator import estimate_output
from .exceptions import TransactionRevertedError
from .history import HistoryStore
from .names import NameCache
from .pool_resolver import resolve_pool
from .tx_service import with_gas_margin

logger = logging.getLogger(__name__)

TERMINAL_STATES = {SwapState.CONFIRMED, SwapState.FAILED}


@dataclass
class Transition:
    state: SwapState
    error: Optional[SwapError] = None

    @classmethod
    def fail(cls, error: SwapError) -> "Transition":
        return cls(SwapState.FAILED, error)


@dataclass
class _Attempt:
    """Everything one run learns; discarded when the run ends."""
    request: SwapRequest
    amount: Decimal = Decimal(0)
    amount_raw: int = 0
    resolution: Optional[PoolResolution] = None
    balance: Optional[BalanceView] = None
    effective_token_in: Optional[str] = None
    estimated_output: Optional[Decimal] = None
    observed_output: Optional[Decimal] = None
    tx_hashes: Dict[str, str] = field(default_factory=dict)
    states: List[SwapState] = field(default_factory=list)


class SwapOrchestrator:
    """
    Drives one swap request at a time against a single contract session.
    Concurrent calls on the same instance are not guarded.
    """

    def __init__(self, session: SwapperSession, history: HistoryStore, aliases: Optional[AliasTokens] = None):
        self.session = session
        self.history = history
        self.aliases = aliases or AliasTokens.from_settings()
        self.names = NameCache(session)
        self.state = SwapState.IDLE
        self.last_outcome: Optional[SwapOutcome] = None
        self._retry_armed = False
        self._steps: Dict[SwapState, Callable[[_Attempt], Transition]] = {
            SwapState.VALIDATING: self._validate,
            SwapState.CONVERTING: self._convert,
            SwapState.AWAITING_APPROVAL: self._approve,
            SwapState.SUBMITTING: self._submit,
        }
        self.history.load()

    # ---------- public API ----------

    def execute(self, request: SwapRequest) -> SwapOutcome:
        outcome = self._run(request)
        self._retry_armed = outcome.state == SwapState.FAILED
        outcome.retry_available = self._retry_armed
        self.last_outcome = outcome
        return outcome

    def retry(self) -> SwapOutcome:
        """The single manual retry of the last failed request."""
        if not self._retry_armed or self.last_outcome is None:
            raise InvalidInputError("No failed swap to retry")
        self._retry_armed = False
        outcome = self._run(self.last_outcome.request)
        outcome.retry_available = False
        self.last_outcome = outcome
        return outcome

    def load_from_history(self, index: int) -> SwapRequest:
        """Reuse a past swap: returns its request and records it again as most recent."""
        entry = self.history.get(index)
        reused = entry.model_copy(update={"timestamp": _now_ms()})
        self.history.record(reused)
        return reused.to_request()

    # ---------- run loop ----------

    def _enter(self, ctx: _Attempt, state: SwapState) -> None:
        self.state = state
        ctx.states.append(state)
        logger.info("swap %s -> %s: %s", ctx.request.token_in, ctx.request.token_out, state.value)

    def _run(self, request: SwapRequest) -> SwapOutcome:
        ctx = _Attempt(request=request)
        transition = Transition(SwapState.VALIDATING)
        while transition.state not in TERMINAL_STATES:
            self._enter(ctx, transition.state)
            transition = self._step(ctx, transition.state)
        self._enter(ctx, transition.state)

        outcome = SwapOutcome(
            state=transition.state,
            states=ctx.states,
            request=request,
            effective_token_in=ctx.effective_token_in,
            tx_hashes=ctx.tx_hashes,
        )
        if transition.state == SwapState.FAILED:
            err = transition.error or UnknownSwapError("Swap failed")
            logger.warning("swap failed [%s]: %s", err.kind.value, err.msg)
            outcome.error_kind = err.kind.value
            outcome.error_msg = err.msg
            outcome.error_details = {k: str(v) for k, v in err.details.items()}
        else:
            outcome.entry = self._record(ctx)
        return outcome

    def _step(self, ctx: _Attempt, state: SwapState) -> Transition:
        try:
            return self._steps[state](ctx)
        except SwapError as e:
            return Transition.fail(e)
        except Exception as e:
            logger.exception("unexpected failure in %s", state.value)
            return Transition.fail(UnknownSwapError("There was a problem with your swap request.", reason=str(e)))

    # ---------- stages ----------

    def _validate(self, ctx: _Attempt) -> Transition:
        req = ctx.request
        # offline checks first: nothing below runs for malformed input
        try:
            ctx.amount = validate_request(req.token_in, req.token_out, req.amount_in, req.contract_address)
        except InvalidInputError as e:
            return Transition.fail(e)
        if not same_address(req.contract_address, self.session.contract_address):
            return Transition.fail(InvalidInputError(
                "Request targets a different contract than this session",
                contract_address=req.contract_address,
            ))
        if not self.session.account:
            return Transition.fail(InvalidInputError("Signer or user account is not initialized"))
        ctx.amount_raw = to_raw(ctx.amount)
        if ctx.amount_raw <= 0:
            return Transition.fail(InvalidInputError("amount is below the token's smallest unit", amount=req.amount_in))

        ctx.resolution = resolve_pool(self.session, self.aliases, req.token_in, req.token_out)
        if not ctx.resolution.exists:
            if ctx.resolution.query_failed:
                return Transition.fail(PoolQueryFailedError("Error checking pool status", token_in=req.token_in, token_out=req.token_out))
            return Transition.fail(PoolNotFoundError("Pool does not exist for this token pair", token_in=req.token_in, token_out=req.token_out))
        ctx.effective_token_in = ctx.resolution.effective_token_in

        ctx.balance = compute_balance(self.session, self.aliases, self.session.account, req.token_in, req.token_out, req.amount_in)
        if ctx.balance.insufficient:
            name = self.names.get(req.token_in) or req.token_in
            return Transition.fail(InsufficientBalanceError(
                f"You need {req.amount_in} {name} but have only {ctx.balance.primary_balance}",
                needed=req.amount_in, balance=ctx.balance.primary_balance,
            ))

        ctx.estimated_output = estimate_output(self.session, ctx.resolution.pool, ctx.effective_token_in, ctx.amount)

        if self._needs_conversion(ctx):
            return Transition(SwapState.CONVERTING)
        return Transition(SwapState.AWAITING_APPROVAL)

    def _needs_conversion(self, ctx: _Attempt) -> bool:
        token_in = ctx.request.token_in
        if self.aliases.is_source(token_in):
            return self.aliases.is_wrapped(ctx.effective_token_in)
        if self.aliases.is_wrapped(token_in):
            bal_w = self._raw_balance(self.aliases.wrapped)
            if bal_w >= ctx.amount_raw:
                return False
            bal_a = self._raw_balance(self.aliases.source)
            return bal_a + bal_w >= ctx.amount_raw
        return False

    def _convert(self, ctx: _Attempt) -> Transition:
        wrapped = self.aliases.wrapped
        shortfall = ctx.amount_raw - self._raw_balance(wrapped)
        if shortfall > 0:
            try:
                ctx.tx_hashes["convert"] = self.session.convert_to_wrapped(wrapped, shortfall)
            except TransactionRevertedError as e:
                return Transition.fail(ConversionIncompleteError("Conversion to WAPLO reverted", tx_hash=e.tx_hash))

        after = self._raw_balance(wrapped)
        if after < ctx.amount_raw:
            return Transition.fail(ConversionIncompleteError(
                "WAPLO balance is still short after conversion",
                needed=from_raw(ctx.amount_raw), balance=from_raw(after),
            ))
        return Transition(SwapState.AWAITING_APPROVAL)

    def _approve(self, ctx: _Attempt) -> Transition:
        token = ctx.effective_token_in
        owner = self.session.account
        spender = self.session.contract_address

        current = self.session.allowance(token, owner, spender)
        if current >= ctx.amount_raw:
            logger.info("Allowance already sufficient (%s >= %s)", current, ctx.amount_raw)
            return Transition(SwapState.SUBMITTING)

        try:
            ctx.tx_hashes["approve"] = self.session.approve(token, spender, ctx.amount_raw)
        except TransactionRevertedError as e:
            return Transition.fail(ApprovalNotEffectiveError("Approval transaction reverted", tx_hash=e.tx_hash))

        after = self.session.allowance(token, owner, spender)
        if after < ctx.amount_raw:
            return Transition.fail(ApprovalNotEffectiveError(
                "Allowance is still below the swap amount after approval",
                allowance=after, needed=ctx.amount_raw,
            ))
        return Transition(SwapState.SUBMITTING)

    def _submit(self, ctx: _Attempt) -> Transition:
        pool_id = ctx.resolution.pool.pool_id
        token = ctx.effective_token_in
        token_out = ctx.request.token_out
        before = self._raw_balance_or_none(token_out)

        try:
            estimate = self.session.estimate_swap_gas(pool_id, token, ctx.amount_raw)
        except Exception as e:
            return Transition.fail(SwapRejectedError("Swap would revert (gas estimation failed)", reason=str(e)))

        try:
            ctx.tx_hashes["swap"] = self.session.swap(pool_id, token, ctx.amount_raw, gas_limit=with_gas_margin(estimate))
        except TransactionRevertedError as e:
            return Transition.fail(SwapRejectedError("Swap transaction reverted", tx_hash=e.tx_hash))

        after = self._raw_balance_or_none(token_out)
        if before is not None and after is not None and after >= before:
            ctx.observed_output = from_raw(after - before)
        else:
            ctx.observed_output = ctx.estimated_output
        logger.info("Successfully swapped %s of %s", ctx.request.amount_in, token)
        return Transition(SwapState.CONFIRMED)

    # ---------- helpers ----------

    def _raw_balance_or_none(self, token: str) -> Optional[int]:
        try:
            return int(self.session.balance_of(token, self.session.account))
        except Exception as e:
            logger.warning("balanceOf(%s) failed: %s", token, e)
            return None

    def _raw_balance(self, token: str) -> int:
        bal = self._raw_balance_or_none(token)
        return 0 if bal is None else bal

    def _record(self, ctx: _Attempt) -> SwapHistoryEntry:
        req = ctx.request
        entry = SwapHistoryEntry(
            token_in=ctx.effective_token_in,
            token_out=checksum(req.token_out),
            amount_in=req.amount_in,
            token_in_name=self.names.get(ctx.effective_token_in),
            token_out_name=self.names.get(req.token_out),
            timestamp=_now_ms(),
            contract_address=checksum(req.contract_address),
            output_amount=None if ctx.observed_output is None else str(ctx.observed_output),
        )
        self.history.record(entry)
        return entry


def _now_ms() -> int:
    return int(time.time() * 1000)
