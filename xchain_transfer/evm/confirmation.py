"""Transaction broadcasting and confirmation."""

import logging

from hexbytes import HexBytes
from web3 import Web3
from web3.types import TxReceipt

from xchain_transfer.evm.hotwallet import SignedTransactionWithNonce

logger = logging.getLogger(__name__)


class TransactionReverted(Exception):
    """Transaction was mined, but it failed."""

    def __init__(self, tx_hash: str, receipt: TxReceipt):
        self.tx_hash = tx_hash
        self.receipt = receipt
        super().__init__(f"Transaction {tx_hash} reverted in block {receipt.get('blockNumber')}")


def broadcast_and_wait(
    web3: Web3,
    signed_tx: SignedTransactionWithNonce,
    timeout: float,
) -> TxReceipt:
    """Broadcast a signed transaction and wait until it is mined.

    :param timeout:
        Seconds to wait for the receipt

    :raise TransactionReverted:
        If the transaction failed

    :raise web3.exceptions.TimeExhausted:
        If the transaction was not mined in time
    """
    tx_hash = web3.eth.send_raw_transaction(signed_tx.raw_transaction)
    tx_hash_hex = Web3.to_hex(HexBytes(tx_hash))
    logger.info("Broadcasted transaction %s, nonce %d, waiting %.0f seconds for mining", tx_hash_hex, signed_tx.nonce, timeout)

    receipt = web3.eth.wait_for_transaction_receipt(tx_hash, timeout=timeout)
    if receipt["status"] != 1:
        raise TransactionReverted(tx_hash_hex, receipt)

    logger.info("Transaction %s mined in block %d", tx_hash_hex, receipt["blockNumber"])
    return receipt
