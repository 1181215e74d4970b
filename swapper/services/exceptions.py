class TransactionRevertedError(Exception):
    """
    Raised when the tx was actually sent on-chain, mined, and status == 0.
    You ALREADY paid gas, the chain executed and reverted.
    """
    def __init__(self, tx_hash: str, receipt: dict, msg: str):
        super().__init__(msg)
        self.tx_hash = tx_hash
        self.receipt = receipt
        self.msg = msg


class ReadOnlySessionError(Exception):
    """
    Raised BEFORE building a tx when no signing key is configured.
    Nothing was sent on-chain.
    """
    def __init__(self, msg: str = "PRIVATE_KEY missing: session is read-only"):
        super().__init__(msg)
        self.msg = msg
