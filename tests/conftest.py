import hashlib
from decimal import Decimal
from typing import Dict, List, Optional, Set, Tuple

import pytest

from swapper.adapters.base import SwapperSession
from swapper.domain.models import Pool
from swapper.domain.tokens import ZERO_ADDR, AliasTokens
from swapper.services.exceptions import TransactionRevertedError
from swapper.services.history import HistoryStore, MemoryKeyValueStore

A = "0x0000000000000000000000000000000000001235"   # APLO
W = "0xd3f708a6aafedd0845928215e74a0f59cac2d1f0"   # WAPLO
G = "0x0000000000000000000000000000000000001234"   # GAPLO
X = "0x00000000000000000000000000000000000000b2"   # some other token
CONTRACT = "0xCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCCC"
ACCOUNT = "0x00000000000000000000000000000000000000a1"

READS = {"get_pool_id", "pool", "get_swap_amount", "pools_by_owner", "balance_of", "allowance", "token_name", "token_symbol"}


def units(x) -> int:
    return int(Decimal(str(x)) * (Decimal(10) ** 18))


def _pid(a: str, b: str) -> str:
    lo, hi = sorted([a.lower(), b.lower()])
    return "0x" + hashlib.sha256(f"{lo}:{hi}".encode()).hexdigest()


class FakeSwapperSession(SwapperSession):
    """In-memory contract + tokens. Balances and allowances are raw ints of ACCOUNT."""

    def __init__(self, contract_address: str = CONTRACT, account: Optional[str] = ACCOUNT):
        self.contract_address = contract_address
        self._account = account
        self.pools: Dict[str, Pool] = {}
        self.balances: Dict[str, int] = {}
        self.allowances: Dict[str, int] = {}
        self.names: Dict[str, str] = {A.lower(): "APLO", W.lower(): "WAPLO", G.lower(): "GAPLO"}
        self.owned: List[str] = []
        self.calls: List[Tuple] = []
        # failure switches
        self.failing_pairs: Set[frozenset] = set()
        self.swap_amount_fails = False
        self.approve_effective = True
        self.approve_reverts = False
        self.convert_effective = True
        self.convert_reverts = False
        self.swap_gas_fails = False
        self.swap_reverts = False

    # ---------- setup helpers ----------
    def add_pool(self, t0: str, t1: str, r0: int, r1: int, fee: int = 3, owner: bool = False) -> Pool:
        pool = Pool(pool_id=_pid(t0, t1), token0=t0, token1=t1, reserve0=r0, reserve1=r1, swap_fee=fee)
        self.pools[pool.pool_id] = pool
        if owner:
            self.owned.append(pool.pool_id)
        return pool

    def fail_pair(self, a: str, b: str):
        self.failing_pairs.add(frozenset({a.lower(), b.lower()}))

    def set_balance(self, token: str, raw: int):
        self.balances[token.lower()] = raw

    def calls_named(self, name: str) -> List[Tuple]:
        return [c for c in self.calls if c[0] == name]

    @property
    def writes(self) -> List[Tuple]:
        return [c for c in self.calls if c[0] not in READS]

    # ---------- SwapperSession ----------
    @property
    def account(self) -> Optional[str]:
        return self._account

    def get_pool_id(self, token_a: str, token_b: str) -> str:
        self.calls.append(("get_pool_id", token_a, token_b))
        if frozenset({token_a.lower(), token_b.lower()}) in self.failing_pairs:
            raise RuntimeError("execution reverted")
        return _pid(token_a, token_b)

    def pool(self, pool_id: str) -> Pool:
        self.calls.append(("pool", pool_id))
        return self.pools.get(pool_id) or Pool(pool_id=pool_id, token0=ZERO_ADDR, token1=ZERO_ADDR)

    def get_swap_amount(self, amount_in: int, reserve_in: int, reserve_out: int, swap_fee: int) -> int:
        self.calls.append(("get_swap_amount", amount_in, reserve_in, reserve_out, swap_fee))
        if self.swap_amount_fails or reserve_in == 0:
            raise RuntimeError("execution reverted: empty pool")
        with_fee = amount_in * (1000 - swap_fee)
        return with_fee * reserve_out // (reserve_in * 1000 + with_fee)

    def pools_by_owner(self, owner: str) -> List[str]:
        self.calls.append(("pools_by_owner", owner))
        return list(self.owned)

    def balance_of(self, token: str, owner: str) -> int:
        self.calls.append(("balance_of", token, owner))
        return self.balances.get(token.lower(), 0)

    def allowance(self, token: str, owner: str, spender: str) -> int:
        self.calls.append(("allowance", token, owner, spender))
        return self.allowances.get(token.lower(), 0)

    def token_name(self, token: str) -> str:
        self.calls.append(("token_name", token))
        try:
            return self.names[token.lower()]
        except KeyError:
            raise RuntimeError("call exception: name()")

    def token_symbol(self, token: str) -> str:
        return self.token_name(token)

    def approve(self, token: str, spender: str, amount: int) -> str:
        self.calls.append(("approve", token, spender, amount))
        if self.approve_reverts:
            raise TransactionRevertedError(tx_hash="0xapprove", receipt={"status": 0}, msg="reverted")
        if self.approve_effective:
            self.allowances[token.lower()] = amount
        return "0xapprove"

    def convert_to_wrapped(self, wrapped_token: str, amount: int) -> str:
        self.calls.append(("convert_to_wrapped", wrapped_token, amount))
        if self.convert_reverts:
            raise TransactionRevertedError(tx_hash="0xconvert", receipt={"status": 0}, msg="reverted")
        if self.convert_effective:
            self.balances[A.lower()] = self.balances.get(A.lower(), 0) - amount
            self.balances[wrapped_token.lower()] = self.balances.get(wrapped_token.lower(), 0) + amount
        return "0xconvert"

    def estimate_swap_gas(self, pool_id: str, token_in: str, amount_in: int) -> int:
        self.calls.append(("estimate_swap_gas", pool_id, token_in, amount_in))
        if self.swap_gas_fails:
            raise RuntimeError("execution reverted")
        return 100_000

    def swap(self, pool_id: str, token_in: str, amount_in: int, gas_limit: Optional[int] = None) -> str:
        self.calls.append(("swap", pool_id, token_in, amount_in, gas_limit))
        if self.swap_reverts:
            raise TransactionRevertedError(tx_hash="0xswap", receipt={"status": 0}, msg="reverted")
        pool = self.pools[pool_id]
        if token_in.lower() == pool.token0.lower():
            r_in, r_out, token_out = pool.reserve0, pool.reserve1, pool.token1
        else:
            r_in, r_out, token_out = pool.reserve1, pool.reserve0, pool.token0
        out = self.get_swap_amount(amount_in, r_in, r_out, pool.swap_fee)
        self.balances[token_in.lower()] = self.balances.get(token_in.lower(), 0) - amount_in
        self.balances[token_out.lower()] = self.balances.get(token_out.lower(), 0) + out
        return "0xswap"


@pytest.fixture
def aliases() -> AliasTokens:
    return AliasTokens(source=A, wrapped=W)


@pytest.fixture
def session() -> FakeSwapperSession:
    return FakeSwapperSession()


@pytest.fixture
def history() -> HistoryStore:
    return HistoryStore(MemoryKeyValueStore(), key="swapHistory")
