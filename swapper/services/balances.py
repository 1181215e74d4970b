import logging
from decimal import Decimal
from typing import Optional

from ..adapters.base import SwapperSession
from ..domain.models import BalanceView
from ..domain.tokens import AliasTokens, checksum, from_raw, is_address, try_parse_amount
from .pool_resolver import wrapped_pool_exists

logger = logging.getLogger(__name__)


def read_balance(session: SwapperSession, token: str, account: Optional[str]) -> Decimal:
    """Human balance of `account`; unreadable balances count as zero."""
    if not account or not is_address(token):
        return Decimal(0)
    try:
        return from_raw(session.balance_of(token, account))
    except Exception as e:
        logger.warning("balanceOf(%s) failed for %s: %s", token, account, e)
        return Decimal(0)


def compute_balance(
    session: SwapperSession,
    aliases: AliasTokens,
    account: Optional[str],
    token_in: Optional[str],
    token_out: Optional[str],
    amount: Optional[str],
) -> BalanceView:
    """
    Usable balance for `token_in`.

    For APLO/WAPLO both balances are read. When a WAPLO pool exists for
    `token_out` either balance may fund the swap (the other is converted
    1:1), so the check is max(A, W) >= amount and the reported balance is
    the one that covers it, APLO first. Without a WAPLO pool only APLO counts.

    Missing or malformed input is "not ready yet": a cleared view, not an error.
    """
    needed = try_parse_amount(amount)
    if not is_address(token_in) or needed is None:
        return BalanceView.cleared()

    if not aliases.is_alias(token_in):
        bal = read_balance(session, token_in, account)
        return BalanceView(
            primary_balance=bal,
            primary_token=checksum(token_in),
            insufficient=bal < needed,
        )

    bal_a = read_balance(session, aliases.source, account)
    bal_w = read_balance(session, aliases.wrapped, account)

    if wrapped_pool_exists(session, aliases, token_out):
        if bal_a >= needed:
            primary_token, primary, other = aliases.source, bal_a, bal_w
        elif bal_w >= needed:
            primary_token, primary, other = aliases.wrapped, bal_w, bal_a
        elif aliases.is_source(token_in):
            primary_token, primary, other = aliases.source, bal_a, bal_w
        else:
            primary_token, primary, other = aliases.wrapped, bal_w, bal_a
        return BalanceView(
            primary_balance=primary,
            primary_token=primary_token,
            alias_balance=other,
            insufficient=max(bal_a, bal_w) < needed,
        )

    return BalanceView(
        primary_balance=bal_a,
        primary_token=aliases.source,
        alias_balance=bal_w,
        insufficient=bal_a < needed,
    )
