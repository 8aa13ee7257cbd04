"""Hot wallet signing.

- Create a local wallet from a private key

- Sign bound contract calls with manual nonce management
"""

import logging
from typing import NamedTuple, Optional

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from hexbytes import HexBytes
from web3 import Web3
from web3.contract.contract import ContractFunction

from xchain_transfer.evm.gas import apply_gas, estimate_gas_price

logger = logging.getLogger(__name__)


class SignedTransactionWithNonce(NamedTuple):
    """A signed transaction with the nonce and source retained for diagnostics."""

    raw_transaction: HexBytes

    hash: HexBytes

    #: What was the source nonce for this transaction
    nonce: int

    #: What was the source address for this transaction
    address: str

    #: Unencoded transaction data as a dict.
    #:
    #: If broadcast fails, retain the source so we can debug the cause,
    #: like the original gas parameters.
    source: Optional[dict] = None

    def __repr__(self):
        return f"<SignedTransactionWithNonce hash:{self.hash.hex()} nonce:{self.nonce}>"


class HotWallet:
    """Hot wallet for signing transactions.

    - Maintains a plain text private key in the process memory
      using :py:class:`eth_account.signers.local.LocalAccount` and a nonce counter.

    - Call :py:meth:`sync_nonce` before signing the first transaction.

    .. note ::

        This class is not thread safe.
    """

    def __init__(self, account: LocalAccount):
        self.account = account
        self.current_nonce: Optional[int] = None

    def __repr__(self):
        return f"<Hot wallet {self.account.address}>"

    @property
    def address(self) -> HexAddress:
        return self.account.address

    @staticmethod
    def from_private_key(key: str) -> "HotWallet":
        """Create a hot wallet from a 0x-prefixed hex private key."""
        assert key.startswith("0x"), "Private key must start with 0x hex prefix"
        return HotWallet(Account.from_key(key))

    def sync_nonce(self, web3: Web3):
        """Initialise the current nonce from the on-chain data."""
        new_nonce = web3.eth.get_transaction_count(self.account.address)
        if self.current_nonce and new_nonce < self.current_nonce:
            logger.warning("Nonce sync failed, read onchain nonce %d that is older than our current nonce %d", new_nonce, self.current_nonce)
            return
        self.current_nonce = new_nonce
        logger.info("Synced nonce for %s to %d", self.account.address, self.current_nonce)

    def allocate_nonce(self) -> int:
        """Get the next free nonce and increase the counter."""
        assert self.current_nonce is not None, f"Nonce is not yet synced from the blockchain: {self}"
        nonce = self.current_nonce
        self.current_nonce += 1
        return nonce

    def sign_transaction_with_new_nonce(self, tx: dict) -> SignedTransactionWithNonce:
        """Sign a transaction and allocate a nonce for it.

        :param tx:
            Ethereum transaction data as a dict.
            This is modified in-place to include nonce.
        """
        assert type(tx) == dict
        assert "nonce" not in tx
        tx["nonce"] = self.allocate_nonce()
        _signed = self.account.sign_transaction(tx)
        return SignedTransactionWithNonce(
            raw_transaction=HexBytes(_signed.raw_transaction),
            hash=HexBytes(_signed.hash),
            nonce=tx["nonce"],
            address=self.address,
            source=tx,
        )

    def sign_bound_call_with_new_nonce(
        self,
        func: ContractFunction,
        value: int | None = None,
    ) -> SignedTransactionWithNonce:
        """Sign a bound Web3 Contract call.

        Gas price is filled from the latest block, gas limit is estimated by the node.

        Example:

        .. code-block:: python

            bound_func = usdc.functions.approve(token_messenger, 1_000_000)
            signed_tx = hot_wallet.sign_bound_call_with_new_nonce(bound_func)
            web3.eth.send_raw_transaction(signed_tx.raw_transaction)

        :param func:
            Web3 contract function that has its arguments bound

        :param value:
            Native token value attached to a payable call
        """
        assert isinstance(func, ContractFunction), f"Got: {type(func)}"
        web3 = func.w3

        tx_params = {
            "from": self.address,
            "chainId": web3.eth.chain_id,
        }
        if value:
            tx_params["value"] = value

        apply_gas(tx_params, estimate_gas_price(web3))
        tx = func.build_transaction(tx_params)
        tx.pop("nonce", None)
        return self.sign_transaction_with_new_nonce(tx)
