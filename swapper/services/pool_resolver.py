"""
Pool discovery with APLO -> WAPLO routing.

APLO is backed 1:1 by WAPLO but may not have liquidity of its own, so when
APLO is the input we prefer the WAPLO pool for the same output token and
fall back to the direct APLO pool. A probe that errors is reported exactly
like an absent pool (`exists=False`); `query_failed` tells the explicit swap
path which of the two it was.
"""

import logging
from typing import Optional, Tuple

from ..adapters.base import SwapperSession
from ..domain.models import Pool, PoolResolution
from ..domain.tokens import AliasTokens, checksum

logger = logging.getLogger(__name__)

NOTE_SWITCHED = "Routing switched to WAPLO: the WAPLO pool has liquidity for this pair"
NOTE_NO_POOL = "No available pool for this token pair"


def probe_pool(session: SwapperSession, token_a: str, token_b: str) -> Tuple[Optional[Pool], bool]:
    """
    Returns (pool, query_failed). `pool` is None when the pool was never
    created or the query raised.
    """
    try:
        pool = session.probe_pool(token_a, token_b)
    except Exception as e:
        logger.warning("pool probe failed for %s/%s: %s", token_a, token_b, e)
        return None, True
    if not pool.exists:
        return None, False
    return pool, False


def resolve_pool(session: SwapperSession, aliases: AliasTokens, token_in: str, token_out: str) -> PoolResolution:
    if aliases.is_source(token_in):
        w_pool, w_failed = probe_pool(session, aliases.wrapped, token_out)
        if w_pool:
            return PoolResolution(exists=True, effective_token_in=aliases.wrapped, pool=w_pool, note=NOTE_SWITCHED)

        a_pool, a_failed = probe_pool(session, aliases.source, token_out)
        if a_pool:
            return PoolResolution(exists=True, effective_token_in=aliases.source, pool=a_pool)

        return PoolResolution(
            exists=False,
            effective_token_in=aliases.source,
            note=NOTE_NO_POOL,
            query_failed=w_failed or a_failed,
        )

    # WAPLO and every other token: direct probe, no substitution
    pool, failed = probe_pool(session, token_in, token_out)
    return PoolResolution(
        exists=pool is not None,
        effective_token_in=checksum(token_in),
        pool=pool,
        note=None if pool else NOTE_NO_POOL,
        query_failed=failed,
    )


def wrapped_pool_exists(session: SwapperSession, aliases: AliasTokens, token_out: Optional[str]) -> bool:
    if not token_out:
        return False
    pool, _ = probe_pool(session, aliases.wrapped, token_out)
    return pool is not None
