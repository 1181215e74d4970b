"""
Recompute-on-input-change driver.

Holds the current (token_in, token_out, amount) triple of one client and
rebuilds the read-only preview (pool, balance, estimate, prices, names)
whenever it changes. Recomputes may overlap (FastAPI runs sync endpoints in
a threadpool); each one takes a generation number and only publishes if no
newer generation has published already. In-flight reads are not cancelled.
"""

import logging
import threading
from typing import List, Optional

from ..adapters.base import SwapperSession
from ..domain.models import OwnedPoolRow, SwapPreview
from ..domain.tokens import AliasTokens, checksum, is_address, try_parse_amount
from .balances import compute_balance
from .estimator import exchange_rate, pool_prices, try_estimate_output
from .names import NameCache
from .pool_resolver import resolve_pool

logger = logging.getLogger(__name__)


def compute_preview(
    session: SwapperSession,
    aliases: AliasTokens,
    account: Optional[str],
    token_in: Optional[str],
    token_out: Optional[str],
    amount: Optional[str],
    names: Optional[NameCache] = None,
) -> SwapPreview:
    """
    Passive path: nothing here raises for bad or incomplete input, failed
    probes or failed estimates. Those just leave fields cleared.
    """
    names = names or NameCache(session)
    preview = SwapPreview(
        token_in_name=names.get(token_in) or None,
        token_out_name=names.get(token_out) or None,
    )
    preview.balance = compute_balance(session, aliases, account, token_in, token_out, amount)

    if not (is_address(token_in) and is_address(token_out)) or token_in.lower() == token_out.lower():
        return preview

    resolution = resolve_pool(session, aliases, token_in, token_out)
    preview.resolution = resolution
    if not resolution.exists:
        return preview

    preview.prices = pool_prices(resolution.pool, resolution.effective_token_in)
    amount_in = try_parse_amount(amount)
    preview.estimated_output = try_estimate_output(session, resolution.pool, resolution.effective_token_in, amount_in)
    preview.exchange_rate = exchange_rate(preview.estimated_output, amount_in)
    return preview


class SwapSession:
    def __init__(self, session: SwapperSession, aliases: Optional[AliasTokens] = None):
        self.session = session
        self.aliases = aliases or AliasTokens.from_settings()
        self.names = NameCache(session)
        self.token_in: Optional[str] = None
        self.token_out: Optional[str] = None
        self.amount: Optional[str] = None
        self._lock = threading.Lock()
        self._generation = 0
        self._published = 0
        self._preview = SwapPreview()

    @property
    def preview(self) -> SwapPreview:
        with self._lock:
            return self._preview

    def update(self, **changes) -> SwapPreview:
        """
        Apply changes to token_in / token_out / amount and recompute.
        Returns the preview that is current once this recompute finishes,
        which may be a newer one than this call computed.
        """
        with self._lock:
            for key in ("token_in", "token_out", "amount"):
                if key in changes:
                    setattr(self, key, changes[key])
            self._generation += 1
            generation = self._generation
            inputs = (self.token_in, self.token_out, self.amount)

        result = compute_preview(self.session, self.aliases, self.session.account, *inputs, names=self.names)
        result.generation = generation
        return self._publish(result)

    def _publish(self, result: SwapPreview) -> SwapPreview:
        with self._lock:
            if result.generation > self._published:
                self._published = result.generation
                self._preview = result
            else:
                logger.debug("dropping stale preview %s (current %s)", result.generation, self._published)
            return self._preview

    def clear(self) -> SwapPreview:
        return self.update(token_in=None, token_out=None, amount=None)


def owned_pools(session: SwapperSession, owner: Optional[str], names: Optional[NameCache] = None) -> List[OwnedPoolRow]:
    """Pools created by `owner`, shaped like history rows so they can be reused."""
    if not owner:
        return []
    names = names or NameCache(session)
    rows: List[OwnedPoolRow] = []
    try:
        pool_ids = session.pools_by_owner(owner)
    except Exception as e:
        logger.warning("getPoolsByOwner failed for %s: %s", owner, e)
        return []
    for pool_id in pool_ids:
        try:
            pool = session.pool(pool_id)
        except Exception as e:
            logger.warning("pools(%s) failed: %s", pool_id, e)
            continue
        if not pool.exists:
            continue
        rows.append(OwnedPoolRow(
            pool_id=pool.pool_id,
            token_in=pool.token0,
            token_out=pool.token1,
            token_in_name=names.get(pool.token0),
            token_out_name=names.get(pool.token1),
            contract_address=checksum(session.contract_address),
        ))
    return rows
