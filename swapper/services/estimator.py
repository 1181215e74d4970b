import logging
from decimal import Decimal
from typing import Optional, Tuple

from ..adapters.base import SwapperSession
from ..domain.errors import EstimationFailedError, TokenNotInPoolError
from ..domain.models import Pool, PoolPrices
from ..domain.tokens import from_raw, same_address, to_raw

logger = logging.getLogger(__name__)


def ordered_reserves(pool: Pool, token_in: str) -> Tuple[int, int]:
    """(input_reserve, output_reserve) for `token_in`, matched case-insensitively."""
    if not pool.has_token(token_in):
        raise TokenNotInPoolError(
            "Token pair not found in the pool",
            pool_id=pool.pool_id, token_in=token_in, token0=pool.token0, token1=pool.token1,
        )
    if same_address(pool.token0, token_in):
        return pool.reserve0, pool.reserve1
    return pool.reserve1, pool.reserve0


def estimate_output(session: SwapperSession, pool: Pool, token_in: str, amount_in: Decimal) -> Decimal:
    """
    Expected output for `amount_in` of `token_in`. The pricing curve is the
    contract's getSwapAmount; we only feed it correctly ordered reserves.
    """
    reserve_in, reserve_out = ordered_reserves(pool, token_in)
    if reserve_in == 0 or reserve_out == 0:
        raise EstimationFailedError("Pool has zero reserves", pool_id=pool.pool_id)
    try:
        out_raw = session.get_swap_amount(to_raw(amount_in), reserve_in, reserve_out, pool.swap_fee)
    except Exception as e:
        raise EstimationFailedError("Failed to calculate swap amount", pool_id=pool.pool_id, reason=str(e))
    return from_raw(out_raw)


def try_estimate_output(session: SwapperSession, pool: Optional[Pool], token_in: str, amount_in: Optional[Decimal]) -> Optional[Decimal]:
    """Passive variant: any failure clears the estimate."""
    if pool is None or amount_in is None:
        return None
    try:
        return estimate_output(session, pool, token_in, amount_in)
    except (TokenNotInPoolError, EstimationFailedError) as e:
        logger.info("estimate cleared: %s", e.msg)
        return None


def pool_prices(pool: Pool, token_in: str) -> Optional[PoolPrices]:
    """Spot exchange rates of the pair from reserves; None for an empty side."""
    try:
        reserve_in, reserve_out = ordered_reserves(pool, token_in)
    except TokenNotInPoolError:
        return None
    if reserve_in == 0 or reserve_out == 0:
        return None
    r_in, r_out = Decimal(reserve_in), Decimal(reserve_out)
    return PoolPrices(price_in=float(r_out / r_in), price_out=float(r_in / r_out))


def exchange_rate(estimated_output: Optional[Decimal], amount_in: Optional[Decimal]) -> Optional[Decimal]:
    if estimated_output is None or not amount_in:
        return None
    return estimated_output / amount_in
