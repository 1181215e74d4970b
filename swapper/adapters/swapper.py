import logging
from typing import List, Optional
from web3 import Web3

from ..config import get_settings
from ..domain.errors import InvalidInputError
from ..domain.models import Pool
from ..services.tx_service import TxService
from ..services.utils import pool_id_hex
from .base import SwapperSession

logger = logging.getLogger(__name__)

# minimal ABI fragments, only what the swap flow calls
ABI_SWAPPER = [
  {"name":"getPoolId","outputs":[{"type":"bytes32"}],
   "inputs":[{"type":"address","name":"tokenA"},{"type":"address","name":"tokenB"}],
   "stateMutability":"view","type":"function"},
  {"name":"pools","outputs":[
    {"type":"address","name":"token0"},
    {"type":"address","name":"token1"},
    {"type":"uint256","name":"token0Reserve"},
    {"type":"uint256","name":"token1Reserve"},
    {"type":"uint256","name":"swapFee"}],
   "inputs":[{"type":"bytes32","name":"poolId"}],"stateMutability":"view","type":"function"},
  {"name":"getSwapAmount","outputs":[{"type":"uint256"}],
   "inputs":[
    {"type":"uint256","name":"amountIn"},
    {"type":"uint256","name":"inputReserve"},
    {"type":"uint256","name":"outputReserve"},
    {"type":"uint256","name":"swapFee"}],
   "stateMutability":"view","type":"function"},
  {"name":"getPoolsByOwner","outputs":[{"type":"bytes32[]"}],
   "inputs":[{"type":"address","name":"owner"}],"stateMutability":"view","type":"function"},
  {"name":"swap","outputs":[],
   "inputs":[
    {"type":"bytes32","name":"poolId"},
    {"type":"address","name":"tokenIn"},
    {"type":"uint256","name":"amountIn"}],
   "stateMutability":"nonpayable","type":"function"},
]

ABI_ERC20 = [
  {"name":"name","outputs":[{"type":"string"}],"inputs":[],"stateMutability":"view","type":"function"},
  {"name":"symbol","outputs":[{"type":"string"}],"inputs":[],"stateMutability":"view","type":"function"},
  {"name":"decimals","outputs":[{"type":"uint8"}],"inputs":[],"stateMutability":"view","type":"function"},
  {"name":"balanceOf","outputs":[{"type":"uint256"}],"inputs":[{"type":"address"}],"stateMutability":"view","type":"function"},
  {"name":"allowance","outputs":[{"type":"uint256"}],
   "inputs":[{"type":"address","name":"owner"},{"type":"address","name":"spender"}],
   "stateMutability":"view","type":"function"},
  {"name":"approve","outputs":[{"type":"bool"}],
   "inputs":[{"type":"address","name":"spender"},{"type":"uint256","name":"amount"}],
   "stateMutability":"nonpayable","type":"function"},
]

ABI_WRAPPED = ABI_ERC20 + [
  {"name":"deposit","outputs":[],"inputs":[],"stateMutability":"payable","type":"function"},
]


class SwapperAdapter(SwapperSession):
    """
    web3.py session for one swapper contract. Writes go through TxService,
    which owns the signing account.
    """

    def __init__(self, w3: Web3, contract_address: str, tx: Optional[TxService] = None):
        self.w3 = w3
        self.contract_address = Web3.to_checksum_address(contract_address)
        self.contract = self.w3.eth.contract(address=self.contract_address, abi=ABI_SWAPPER)
        self.tx = tx or TxService(w3=w3)

    @property
    def account(self) -> Optional[str]:
        if self.tx.read_only:
            return None
        return self.tx.sender_address()

    def erc20(self, addr: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(addr), abi=ABI_ERC20)

    def wrapped(self, addr: str):
        return self.w3.eth.contract(address=Web3.to_checksum_address(addr), abi=ABI_WRAPPED)

    # -------- swapper reads --------

    def get_pool_id(self, token_a: str, token_b: str) -> str:
        pid = self.contract.functions.getPoolId(
            Web3.to_checksum_address(token_a), Web3.to_checksum_address(token_b)
        ).call()
        return pool_id_hex(pid)

    def pool(self, pool_id: str) -> Pool:
        t0, t1, r0, r1, fee = self.contract.functions.pools(pool_id).call()
        return Pool(
            pool_id=pool_id_hex(pool_id),
            token0=Web3.to_checksum_address(t0),
            token1=Web3.to_checksum_address(t1),
            reserve0=int(r0),
            reserve1=int(r1),
            swap_fee=int(fee),
        )

    def get_swap_amount(self, amount_in: int, reserve_in: int, reserve_out: int, swap_fee: int) -> int:
        out = self.contract.functions.getSwapAmount(
            int(amount_in), int(reserve_in), int(reserve_out), int(swap_fee)
        ).call()
        return int(out)

    def pools_by_owner(self, owner: str) -> List[str]:
        ids = self.contract.functions.getPoolsByOwner(Web3.to_checksum_address(owner)).call()
        return [pool_id_hex(pid) for pid in ids]

    # -------- token reads --------

    def balance_of(self, token: str, owner: str) -> int:
        return int(self.erc20(token).functions.balanceOf(Web3.to_checksum_address(owner)).call())

    def allowance(self, token: str, owner: str, spender: str) -> int:
        return int(self.erc20(token).functions.allowance(
            Web3.to_checksum_address(owner), Web3.to_checksum_address(spender)
        ).call())

    def token_name(self, token: str) -> str:
        return str(self.erc20(token).functions.name().call())

    def token_symbol(self, token: str) -> str:
        return str(self.erc20(token).functions.symbol().call())

    # -------- writes --------

    def approve(self, token: str, spender: str, amount: int) -> str:
        fn = self.erc20(token).functions.approve(Web3.to_checksum_address(spender), int(amount))
        res = self.tx.send(fn, wait=True)
        logger.info("approve %s -> %s amount=%s tx=%s", token, spender, amount, res["tx_hash"])
        return res["tx_hash"]

    def convert_to_wrapped(self, wrapped_token: str, amount: int) -> str:
        fn = self.wrapped(wrapped_token).functions.deposit()
        res = self.tx.send(fn, wait=True, value=int(amount))
        logger.info("deposit %s into %s tx=%s", amount, wrapped_token, res["tx_hash"])
        return res["tx_hash"]

    def _fn_swap(self, pool_id: str, token_in: str, amount_in: int):
        return self.contract.functions.swap(pool_id, Web3.to_checksum_address(token_in), int(amount_in))

    def estimate_swap_gas(self, pool_id: str, token_in: str, amount_in: int) -> int:
        return self.tx.estimate(self._fn_swap(pool_id, token_in, amount_in))

    def swap(self, pool_id: str, token_in: str, amount_in: int, gas_limit: Optional[int] = None) -> str:
        res = self.tx.send(self._fn_swap(pool_id, token_in, amount_in), wait=True, gas_limit=gas_limit)
        logger.info("swap pool=%s token_in=%s amount=%s tx=%s", pool_id, token_in, amount_in, res["tx_hash"])
        return res["tx_hash"]


def open_session(contract_address: str, rpc_url: Optional[str] = None, private_key: Optional[str] = None) -> SwapperAdapter:
    """Contract initialization: validates the address and wires w3 + signer."""
    if not contract_address or not Web3.is_address(contract_address):
        raise InvalidInputError("Invalid contract address format", contract_address=contract_address)
    s = get_settings()
    w3 = Web3(Web3.HTTPProvider(rpc_url or s.RPC_URL_DEFAULT))
    tx = TxService(w3=w3, private_key=private_key)
    return SwapperAdapter(w3, contract_address, tx)
