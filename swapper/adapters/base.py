from abc import ABC, abstractmethod
from typing import List, Optional

from ..domain.models import Pool


class SwapperSession(ABC):
    """
    Abstract session over one deployed swapper contract plus arbitrary ERC20 tokens.
    One concrete instance per contract address; the connected account is
    whatever signs the writes.

    All amounts are raw integers. Writes block until the receipt is mined
    and return the tx hash; a reverted tx raises TransactionRevertedError.
    """

    contract_address: str

    # ---------- account ----------
    @property
    @abstractmethod
    def account(self) -> Optional[str]:
        """Connected account address, None when the session cannot sign."""
        ...

    # ---------- swapper reads ----------
    @abstractmethod
    def get_pool_id(self, token_a: str, token_b: str) -> str: ...

    @abstractmethod
    def pool(self, pool_id: str) -> Pool: ...

    @abstractmethod
    def get_swap_amount(self, amount_in: int, reserve_in: int, reserve_out: int, swap_fee: int) -> int: ...

    @abstractmethod
    def pools_by_owner(self, owner: str) -> List[str]: ...

    # ---------- token reads ----------
    @abstractmethod
    def balance_of(self, token: str, owner: str) -> int: ...

    @abstractmethod
    def allowance(self, token: str, owner: str, spender: str) -> int: ...

    @abstractmethod
    def token_name(self, token: str) -> str: ...

    @abstractmethod
    def token_symbol(self, token: str) -> str: ...

    # ---------- writes ----------
    @abstractmethod
    def approve(self, token: str, spender: str, amount: int) -> str: ...

    @abstractmethod
    def convert_to_wrapped(self, wrapped_token: str, amount: int) -> str:
        """Send `amount` of value to the wrapped token's deposit() (1:1)."""
        ...

    @abstractmethod
    def estimate_swap_gas(self, pool_id: str, token_in: str, amount_in: int) -> int: ...

    @abstractmethod
    def swap(self, pool_id: str, token_in: str, amount_in: int, gas_limit: Optional[int] = None) -> str: ...

    # ---------- helpers ----------
    def probe_pool(self, token_a: str, token_b: str) -> Pool:
        """getPoolId + pools(poolId). Exceptions propagate to the caller."""
        return self.pool(self.get_pool_id(token_a, token_b))
