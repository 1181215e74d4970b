# swapper/cli.py
"""
Command line driver for the swapper contract.

Commands:
- tokens                         list well-known tokens and the alias pair
- preview  --in --out --amount   pool / balance / estimated output (read-only)
- swap     --in --out --amount   convert (if needed) + approve + swap; --yes skips the prompt
- history  [--clear]             local swap history (5 most recent)
- use INDEX [--yes]              repeat a past swap
- pools    [--owner]             pools created by an account on the contract

The contract comes from --contract or SWAPPER_ADDRESS; the signer from PRIVATE_KEY.
"""

import argparse
import sys
from typing import Optional

from .adapters.swapper import open_session
from .config import get_settings
from .domain.errors import SwapError
from .domain.models import SwapOutcome, SwapPreview, SwapRequest, SwapState
from .domain.tokens import DEFAULT_TOKENS, AliasTokens, format_address, token_key_by_address
from .services.history import HistoryStore, JsonFileKeyValueStore
from .services.orchestrator import SwapOrchestrator
from .services.session import SwapSession, owned_pools
from .utils.log import format_trail, log_error, log_info, log_ok, log_warn


def _resolve_token(value: str) -> str:
    """Accept a catalog key (WAPLO, APLO, GAPLO) or a raw address."""
    key = (value or "").upper()
    if key in DEFAULT_TOKENS and DEFAULT_TOKENS[key]["address"]:
        return DEFAULT_TOKENS[key]["address"]
    return value


def _token_label(addr: str, name: str = "") -> str:
    """Stored name, else the catalog key, else the short address."""
    if name:
        return name
    key = token_key_by_address(addr)
    return key if key != "MANUAL" else format_address(addr)


def _contract(args) -> str:
    return args.contract or get_settings().SWAPPER_ADDRESS


def _history() -> HistoryStore:
    store = HistoryStore(JsonFileKeyValueStore())
    store.load()
    return store


def _print_preview(p: SwapPreview, amount: Optional[str]):
    name_in = p.token_in_name or "?"
    name_out = p.token_out_name or "?"
    res = p.resolution
    if res is None:
        log_warn("incomplete input: nothing to resolve")
        return
    if not res.exists:
        log_warn(res.note or "Pool does not exist for this token pair")
        return
    if res.note:
        log_info(res.note)
    log_info(f"pool {res.pool.pool_id} effective input {format_address(res.effective_token_in)}")
    if p.prices:
        log_info(f"1 {name_in} = {p.prices.price_in:.6f} {name_out}")
        log_info(f"1 {name_out} = {p.prices.price_out:.6f} {name_in}")
    if p.balance.primary_balance is not None:
        line = f"balance: {p.balance.primary_balance} ({format_address(p.balance.primary_token)})"
        if p.balance.alias_balance is not None:
            line += f" alias: {p.balance.alias_balance}"
        (log_warn if p.balance.insufficient else log_info)(line)
    if p.balance.insufficient:
        log_warn(f"Insufficient balance. You need {amount} {name_in}")
    if p.estimated_output is not None:
        log_info(f"You will receive: {p.estimated_output:.6f} {name_out} (rate {p.exchange_rate:.6f})")
    else:
        log_warn("Unable to calculate exchange amount. Please check input values.")


def _print_outcome(outcome: SwapOutcome) -> int:
    trail = format_trail(s.value for s in outcome.states)
    if outcome.state == SwapState.CONFIRMED:
        log_ok(f"Swap completed successfully! ({trail})")
        for stage, txh in outcome.tx_hashes.items():
            log_info(f"{stage}: {txh}")
        if outcome.entry and outcome.entry.output_amount:
            log_info(f"received {outcome.entry.output_amount} {outcome.entry.token_out_name}")
        return 0
    log_error(f"[{outcome.error_kind}] {outcome.error_msg} ({trail})")
    return 1


def _confirm(yes: bool) -> bool:
    if yes:
        return True
    return input("Proceed with swap? [y/N] ").strip().lower() in ("y", "yes")


def _run_swap(orch: SwapOrchestrator, req: SwapRequest, yes: bool) -> int:
    if not _confirm(yes):
        log_warn("aborted")
        return 1
    rc = _print_outcome(orch.execute(req))
    if rc and orch.last_outcome.retry_available and not yes:
        if input("Try again? [y/N] ").strip().lower() in ("y", "yes"):
            rc = _print_outcome(orch.retry())
    return rc


def cmd_tokens(args) -> int:
    aliases = AliasTokens.from_settings()
    for key, tok in DEFAULT_TOKENS.items():
        if tok["address"]:
            log_info(f"{key:6} {tok['address']}")
    log_info(f"alias pair: {format_address(aliases.source)} -> {format_address(aliases.wrapped)}")
    return 0


def cmd_preview(args) -> int:
    session = open_session(_contract(args))
    swap_session = SwapSession(session)
    p = swap_session.update(token_in=_resolve_token(args.token_in), token_out=_resolve_token(args.token_out), amount=args.amount)
    _print_preview(p, args.amount)
    return 0 if p.can_swap else 1


def cmd_swap(args) -> int:
    contract = _contract(args)
    session = open_session(contract)
    req = SwapRequest(
        token_in=_resolve_token(args.token_in),
        token_out=_resolve_token(args.token_out),
        amount_in=args.amount,
        contract_address=contract,
    )
    _print_preview(SwapSession(session).update(token_in=req.token_in, token_out=req.token_out, amount=req.amount_in), req.amount_in)
    orch = SwapOrchestrator(session, _history())
    return _run_swap(orch, req, args.yes)


def cmd_history(args) -> int:
    store = _history()
    if args.clear:
        store.clear()
        log_ok("History cleared successfully!")
        return 0
    if not store.entries:
        log_info("no swaps recorded yet")
    for i, e in enumerate(store.entries):
        out = f" -> {e.output_amount}" if e.output_amount else ""
        log_info(
            f"[{i}] {_token_label(e.token_in, e.token_in_name)} -> "
            f"{_token_label(e.token_out, e.token_out_name)} amount {e.amount_in}{out} "
            f"contract {format_address(e.contract_address)}"
        )
    return 0


def cmd_use(args) -> int:
    store = _history()
    try:
        entry = store.get(args.index)
    except IndexError:
        log_error(f"no history entry at index {args.index}")
        return 1
    session = open_session(entry.contract_address)
    orch = SwapOrchestrator(session, store)
    req = orch.load_from_history(args.index)
    log_info(f"loaded {req.amount_in} {_token_label(req.token_in)} -> {_token_label(req.token_out)}")
    return _run_swap(orch, req, args.yes)


def cmd_pools(args) -> int:
    session = open_session(_contract(args))
    owner = args.owner or session.account
    if not owner:
        log_error("no owner given and PRIVATE_KEY is not set")
        return 1
    rows = owned_pools(session, owner)
    if not rows:
        log_info("no pools for this owner")
    for row in rows:
        log_info(f"{row.pool_id} {row.token_in_name} -> {row.token_out_name}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="swapper", description="APLO pool swapper")
    ap.add_argument("--contract", help="swapper contract address (default: SWAPPER_ADDRESS)")
    sub = ap.add_subparsers(dest="command", required=True)

    sub.add_parser("tokens").set_defaults(func=cmd_tokens)

    for name, func in (("preview", cmd_preview), ("swap", cmd_swap)):
        p = sub.add_parser(name)
        p.add_argument("--in", dest="token_in", required=True, help="token key or address")
        p.add_argument("--out", dest="token_out", required=True, help="token key or address")
        p.add_argument("--amount", required=True, help="human amount, e.g. 1.5")
        if name == "swap":
            p.add_argument("--yes", action="store_true", help="do not prompt")
        p.set_defaults(func=func)

    h = sub.add_parser("history")
    h.add_argument("--clear", action="store_true")
    h.set_defaults(func=cmd_history)

    u = sub.add_parser("use")
    u.add_argument("index", type=int)
    u.add_argument("--yes", action="store_true")
    u.set_defaults(func=cmd_use)

    po = sub.add_parser("pools")
    po.add_argument("--owner")
    po.set_defaults(func=cmd_pools)
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return args.func(args)
    except SwapError as e:
        log_error(f"[{e.kind.value}] {e.msg}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
