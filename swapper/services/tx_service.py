import logging
from typing import Optional
from web3 import Web3
from web3.contract.contract import ContractFunction
from eth_account import Account

from ..config import get_settings
from .exceptions import ReadOnlySessionError, TransactionRevertedError
from .utils import to_json_safe

logger = logging.getLogger(__name__)

# fixed safety margin on top of the node's gas estimate (20%)
GAS_MARGIN_PCT = 20
FALLBACK_GAS_LIMIT = 300_000


def with_gas_margin(estimate: int) -> int:
    return int(estimate) * (100 + GAS_MARGIN_PCT) // 100


class TxService:
    """
    Transaction sender for the connected account.

    Responsibilities:
    - Build, sign and broadcast contract calls.
    - Apply the gas margin when no explicit limit is given.
    - Wait for the receipt and raise on revert.
    """

    def __init__(self, w3: Optional[Web3] = None, rpc_url: Optional[str] = None, private_key: Optional[str] = None):
        s = get_settings()
        self.w3 = w3 or Web3(Web3.HTTPProvider(rpc_url or s.RPC_URL_DEFAULT))
        self.pk = private_key if private_key is not None else s.PRIVATE_KEY
        self.account = Account.from_key(self.pk) if self.pk else None

    @property
    def read_only(self) -> bool:
        return self.account is None

    def sender_address(self) -> Optional[str]:
        return self.account.address if self.account else None

    # ---------- internal helpers ----------

    def _require_account(self):
        if self.account is None:
            raise ReadOnlySessionError()
        return self.account

    def _next_nonce(self) -> int:
        return self.w3.eth.get_transaction_count(self.account.address)

    def _estimate_with_margin(self, tx: dict) -> int:
        """
        Calls estimateGas(tx) and applies the fixed margin.
        Falls back to a static 300k if node estimation fails.
        """
        try:
            base_estimate = int(self.w3.eth.estimate_gas(tx))
        except Exception as e:
            logger.warning("estimate_gas failed, using fallback %s: %s", FALLBACK_GAS_LIMIT, e)
            return FALLBACK_GAS_LIMIT
        return with_gas_margin(base_estimate)

    def _finalize_fee_fields(self, tx: dict) -> dict:
        """
        If the caller didn't specify EIP-1559 style fields, fallback to legacy gasPrice.
        """
        if "maxFeePerGas" in tx or "maxPriorityFeePerGas" in tx:
            return tx
        if "gasPrice" not in tx:
            tx["gasPrice"] = self.w3.eth.gas_price
        return tx

    def _build_tx_dict(self, fn: ContractFunction, value_wei: int) -> dict:
        """
        Builds the bare transaction dict with from/nonce/value but no gas limit yet.
        """
        base_tx = {
            "from":  self.account.address,
            "nonce": self._next_nonce(),
            "value": int(value_wei or 0),
        }
        return fn.build_transaction(base_tx)

    def _sign_and_send(self, tx: dict) -> str:
        signed = self.w3.eth.account.sign_transaction(tx, self.pk)
        txh = self.w3.eth.send_raw_transaction(signed.raw_transaction)
        return Web3.to_hex(txh)

    def _wait_receipt(self, tx_hash: str) -> dict:
        rcpt = self.w3.eth.wait_for_transaction_receipt(tx_hash)
        return dict(rcpt)

    # ---------- public API ----------

    def estimate(self, fn: ContractFunction, value: int = 0) -> int:
        """Raw node estimate for `fn` from the connected account (no margin)."""
        account = self._require_account()
        return int(fn.estimate_gas({"from": account.address, "value": int(value or 0)}))

    def send(
        self,
        fn: ContractFunction,
        *,
        wait: bool = True,
        value: int = 0,
        gas_limit: Optional[int] = None,
    ) -> dict:
        """
        Broadcasts a state-changing transaction on-chain for a given contract function.

        Args:
            fn: Already-parameterized ContractFunction from web3.py
            wait: If True, block until mined and attach receipt + status
            value: native value (wei) to send along with the call
            gas_limit: Force a gas limit instead of estimate + margin

        Returns:
            {"tx_hash": "0x..", "receipt": {...} | None, "status": 1 | None, "gas_limit_used": int}

        Raises:
            ReadOnlySessionError: no signing key, nothing was sent.
            TransactionRevertedError: mined with status == 0.
        """
        self._require_account()

        tx = self._build_tx_dict(fn, value_wei=value)
        final_gas_limit = int(gas_limit) if gas_limit is not None else self._estimate_with_margin(tx)
        tx["gas"] = final_gas_limit
        tx = self._finalize_fee_fields(tx)

        tx_hash = self._sign_and_send(tx)
        logger.info("tx broadcasted %s gas_limit=%s", tx_hash, final_gas_limit)

        if not wait:
            return {"tx_hash": tx_hash, "receipt": None, "status": None, "gas_limit_used": final_gas_limit}

        rcpt = self._wait_receipt(tx_hash)
        status = int(rcpt.get("status", 0))
        if status == 0:
            raise TransactionRevertedError(
                tx_hash=tx_hash,
                receipt=to_json_safe(rcpt),
                msg="Transaction reverted (status=0). Possibly out-of-gas or require() failed",
            )

        return to_json_safe({
            "tx_hash": tx_hash,
            "receipt": rcpt,
            "status": status,
            "gas_limit_used": final_gas_limit,
        })
