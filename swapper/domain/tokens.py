"""
Well-known tokens, the APLO/WAPLO alias pair and address/amount helpers.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_DOWN, localcontext
from typing import Dict, Optional

from web3 import Web3

from ..config import get_settings
from .errors import InvalidInputError

ZERO_ADDR = "0x0000000000000000000000000000000000000000"

DEFAULT_TOKENS: Dict[str, Dict[str, str]] = {
    "MANUAL": {"address": "", "name": "Enter manually"},
    "WAPLO": {"address": "0xd3F708a6aAfEDD0845928215E74a0f59cAC2D1f0", "name": "WAPLO"},
    "APLO": {"address": "0x0000000000000000000000000000000000001235", "name": "APLO"},
    "GAPLO": {"address": "0x0000000000000000000000000000000000001234", "name": "GAPLO"},
}


def same_address(a: Optional[str], b: Optional[str]) -> bool:
    if not a or not b:
        return False
    return a.lower() == b.lower()


def is_address(addr: Optional[str]) -> bool:
    return bool(addr) and Web3.is_address(addr)


def checksum(addr: str) -> str:
    return Web3.to_checksum_address(addr)


def format_address(addr: Optional[str]) -> str:
    """Short form used for display: 0x1234...abcd."""
    if not addr:
        return "N/A"
    return f"{addr[:6]}...{addr[-4:]}"


def token_key_by_address(addr: str) -> str:
    for key, token in DEFAULT_TOKENS.items():
        if token["address"] and same_address(token["address"], addr):
            return key
    return "MANUAL"


@dataclass(frozen=True)
class AliasTokens:
    """
    The alias pair: `source` (APLO) is backed 1:1 by `wrapped` (WAPLO)
    and can be converted into it through the wrapped token's deposit().
    """
    source: str
    wrapped: str

    def is_source(self, addr: Optional[str]) -> bool:
        return same_address(addr, self.source)

    def is_wrapped(self, addr: Optional[str]) -> bool:
        return same_address(addr, self.wrapped)

    def is_alias(self, addr: Optional[str]) -> bool:
        return self.is_source(addr) or self.is_wrapped(addr)

    @classmethod
    def from_settings(cls) -> "AliasTokens":
        s = get_settings()
        return cls(source=checksum(s.ALIAS_SOURCE_TOKEN), wrapped=checksum(s.ALIAS_WRAPPED_TOKEN))


# ---------- amounts ----------

# enough digits for any uint256 raw amount plus its fractional part
_PRECISION = 80
MAX_RAW = 2 ** 256 - 1


def _decimals(decimals: Optional[int]) -> int:
    return get_settings().TOKEN_DECIMALS if decimals is None else decimals


def _fraction_digits(value: Decimal) -> int:
    """Significant digits after the point; trailing zeros do not count."""
    t = value.as_tuple()
    digits = "".join(map(str, t.digits)).rstrip("0")
    exponent = t.exponent + (len(t.digits) - len(digits))
    return max(0, -exponent)


def parse_amount(raw: Optional[str], decimals: Optional[int] = None) -> Decimal:
    """
    Parse a human decimal string. Raises InvalidInputError when the value
    is missing, not a finite number, not strictly positive, has more
    fractional digits than the token, or does not fit a uint256.
    """
    if raw is None or str(raw).strip() == "":
        raise InvalidInputError("amount is required")
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        raise InvalidInputError(f"invalid amount: {raw!r}")
    if not value.is_finite():
        raise InvalidInputError(f"invalid amount: {raw!r}")
    if value <= 0:
        raise InvalidInputError("amount must be > 0", amount=str(raw))

    dec = _decimals(decimals)
    if value.adjusted() + 1 + dec > _PRECISION:
        raise InvalidInputError("amount is too large", amount=str(raw))
    if _fraction_digits(value) > dec:
        raise InvalidInputError(f"amount has more than {dec} decimal places", amount=str(raw))
    if to_raw(value, dec) > MAX_RAW:
        raise InvalidInputError("amount is too large", amount=str(raw))
    return value


def try_parse_amount(raw: Optional[str], decimals: Optional[int] = None) -> Optional[Decimal]:
    try:
        return parse_amount(raw, decimals)
    except InvalidInputError:
        return None


def to_raw(amount: Decimal, decimals: Optional[int] = None) -> int:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        scaled = (amount * (Decimal(10) ** _decimals(decimals))).quantize(Decimal(1), rounding=ROUND_DOWN)
    return int(scaled)


def from_raw(raw: int, decimals: Optional[int] = None) -> Decimal:
    with localcontext() as ctx:
        ctx.prec = _PRECISION
        return Decimal(int(raw)) / (Decimal(10) ** _decimals(decimals))


def validate_request(token_in: str, token_out: str, amount_in: str, contract_address: str) -> Decimal:
    """
    Offline checks of a swap request; no network call.
    Returns the parsed amount.
    """
    if not is_address(contract_address):
        raise InvalidInputError("Invalid contract address format", contract_address=contract_address)
    if not is_address(token_in) or not is_address(token_out):
        raise InvalidInputError("Invalid token addresses", token_in=token_in, token_out=token_out)
    if same_address(token_in, token_out):
        raise InvalidInputError("Input and output token must differ", token=token_in)
    return parse_amount(amount_in)
