from decimal import Decimal
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field

from .tokens import ZERO_ADDR, same_address


class Pool(BaseModel):
    pool_id: str                  # bytes32 hex
    token0: str
    token1: str
    reserve0: int = 0             # raw
    reserve1: int = 0             # raw
    swap_fee: int = 0             # raw, passed through to getSwapAmount

    @property
    def exists(self) -> bool:
        return bool(self.token0) and not same_address(self.token0, ZERO_ADDR)

    def has_token(self, addr: str) -> bool:
        return same_address(self.token0, addr) or same_address(self.token1, addr)


class PoolResolution(BaseModel):
    exists: bool
    effective_token_in: Optional[str] = None
    pool: Optional[Pool] = None
    note: Optional[str] = None
    query_failed: bool = False


class BalanceView(BaseModel):
    primary_balance: Optional[Decimal] = None
    primary_token: Optional[str] = None
    alias_balance: Optional[Decimal] = None
    insufficient: bool = False

    @classmethod
    def cleared(cls) -> "BalanceView":
        return cls()


class PoolPrices(BaseModel):
    price_in: float               # token_out per token_in
    price_out: float              # token_in per token_out


class SwapRequest(BaseModel):
    token_in: str
    token_out: str
    amount_in: str                # human decimal string
    contract_address: str


class SwapHistoryEntry(BaseModel):
    token_in: str
    token_out: str
    amount_in: str
    token_in_name: str = ""
    token_out_name: str = ""
    timestamp: int                # ms
    contract_address: str
    output_amount: Optional[str] = None

    def to_request(self) -> SwapRequest:
        return SwapRequest(
            token_in=self.token_in,
            token_out=self.token_out,
            amount_in=self.amount_in,
            contract_address=self.contract_address,
        )


class SwapPreview(BaseModel):
    resolution: Optional[PoolResolution] = None
    balance: BalanceView = Field(default_factory=BalanceView)
    estimated_output: Optional[Decimal] = None
    exchange_rate: Optional[Decimal] = None
    prices: Optional[PoolPrices] = None
    token_in_name: Optional[str] = None
    token_out_name: Optional[str] = None
    generation: int = 0

    @property
    def can_swap(self) -> bool:
        return bool(
            self.resolution and self.resolution.exists
            and self.estimated_output is not None
            and not self.balance.insufficient
        )


class SwapState(str, Enum):
    IDLE = "Idle"
    VALIDATING = "Validating"
    CONVERTING = "Converting"
    AWAITING_APPROVAL = "AwaitingApproval"
    SUBMITTING = "Submitting"
    CONFIRMED = "Confirmed"
    FAILED = "Failed"


class SwapOutcome(BaseModel):
    state: SwapState
    states: List[SwapState] = []
    request: SwapRequest
    effective_token_in: Optional[str] = None
    error_kind: Optional[str] = None
    error_msg: Optional[str] = None
    error_details: Dict[str, Any] = {}
    tx_hashes: Dict[str, str] = {}
    entry: Optional[SwapHistoryEntry] = None
    retry_available: bool = False


class OwnedPoolRow(BaseModel):
    pool_id: str
    token_in: str
    token_out: str
    token_in_name: str
    token_out_name: str
    amount_in: str = "0"
    contract_address: str
