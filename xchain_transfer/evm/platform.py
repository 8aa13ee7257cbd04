"""EVM chain platform adapter.

- One :py:class:`web3.Web3` connection per chain, with POA middleware where the chain needs it

- Signing with a local private key through :py:class:`~xchain_transfer.evm.hotwallet.HotWallet`

- ERC-20 decimals lookups, cached in process memory

web3.py is synchronous. The async methods here run the JSON-RPC calls
in the default executor, see :py:func:`xchain_transfer.utils.run_blocking`.
"""

import logging

import cachetools
from web3 import HTTPProvider, Web3
from web3.contract.contract import ContractFunction
from web3.middleware import ExtraDataToPOAMiddleware
from web3.types import TxReceipt

from xchain_transfer.abi import get_deployed_contract
from xchain_transfer.chain import POA_MIDDLEWARE_NEEDED_CHAIN_IDS, PLATFORM_EVM, ChainAddress, ChainEndpoint
from xchain_transfer.config import DEFAULT_RECEIPT_TIMEOUT, ConfigurationError, TransferConfig
from xchain_transfer.evm.confirmation import TransactionReverted, broadcast_and_wait
from xchain_transfer.evm.hotwallet import HotWallet
from xchain_transfer.platform import ChainPlatformAdapter, ChainSigner, SignerHandle
from xchain_transfer.utils import run_blocking

logger = logging.getLogger(__name__)


#: By default we cache 1024 token decimals using LRU in the process memory.
DEFAULT_DECIMALS_CACHE = cachetools.LRUCache(1024)


def create_web3(chain: ChainEndpoint, rpc_url: str) -> Web3:
    """Connect to an EVM chain.

    Installs POA middleware for chains like Polygon and Avalanche.
    No network request is made here.
    """
    assert chain.is_evm, f"Not an EVM chain: {chain}"
    web3 = Web3(HTTPProvider(rpc_url, request_kwargs={"timeout": 30}))
    if chain.evm_chain_id in POA_MIDDLEWARE_NEEDED_CHAIN_IDS:
        web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


class EVMSigner(ChainSigner):
    """Hot wallet signer bound to one chain connection."""

    def __init__(
        self,
        chain: ChainEndpoint,
        web3: Web3,
        wallet: HotWallet,
        receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT,
    ):
        self._chain = chain
        self.web3 = web3
        self.wallet = wallet
        self.receipt_timeout = receipt_timeout

    def __repr__(self):
        return f"<EVMSigner {self.wallet.address} on {self._chain.name}>"

    @property
    def chain(self) -> ChainEndpoint:
        return self._chain

    @property
    def address(self) -> str:
        return self.wallet.address

    def transact(self, func: ContractFunction, value: int | None = None) -> TxReceipt:
        """Sign, broadcast and wait for a bound contract call.

        Blocking, call through :py:meth:`transact_async` from async code.

        :param value:
            Native token value for payable calls

        :raise TransactionReverted:
            If the call failed on-chain
        """
        assert func.w3 is self.web3, f"Contract function is bound to another chain connection than {self}"
        self.wallet.sync_nonce(self.web3)
        signed = self.wallet.sign_bound_call_with_new_nonce(func, value=value)
        return broadcast_and_wait(self.web3, signed, timeout=self.receipt_timeout)

    async def transact_async(self, func: ContractFunction, value: int | None = None) -> TxReceipt:
        return await run_blocking(self.transact, func, value)


class EVMPlatform(ChainPlatformAdapter):
    """Adapter for all EVM chains."""

    platform = PLATFORM_EVM

    def __init__(self, decimals_cache: cachetools.Cache = DEFAULT_DECIMALS_CACHE):
        self.connections: dict[str, Web3] = {}
        self.decimals_cache = decimals_cache

    def __repr__(self):
        return f"<EVMPlatform connections:{list(self.connections.keys())}>"

    def get_web3(self, chain: ChainEndpoint, config: TransferConfig) -> Web3:
        """Get the cached connection of a chain, or open one."""
        web3 = self.connections.get(chain.name)
        if web3 is None:
            rpc_url = config.get_rpc_url(chain)
            if not rpc_url:
                raise ConfigurationError(f"No JSON-RPC URL configured for {chain.name}")
            web3 = create_web3(chain, rpc_url)
            self.connections[chain.name] = web3
        return web3

    async def get_signer(self, chain: ChainEndpoint, config: TransferConfig) -> SignerHandle:
        wallet = HotWallet.from_private_key(config.get_private_key(self.platform))
        signer = EVMSigner(
            chain,
            self.get_web3(chain, config),
            wallet,
            receipt_timeout=config.receipt_timeout,
        )
        return SignerHandle(
            chain=chain,
            address=ChainAddress(chain, wallet.address),
            signer=signer,
        )

    async def get_transaction_receipt(self, chain: ChainEndpoint, config: TransferConfig, txid: str) -> TxReceipt:
        """Read the receipt of an already mined transaction.

        :raise TransactionReverted:
            If the transaction failed
        """
        web3 = self.get_web3(chain, config)
        receipt = await run_blocking(web3.eth.get_transaction_receipt, txid)
        if receipt["status"] != 1:
            raise TransactionReverted(txid, receipt)
        return receipt

    async def get_decimals(self, chain: ChainEndpoint, config: TransferConfig, token_address: str) -> int:
        key = f"{chain.evm_chain_id}-{token_address.lower()}"
        decimals = self.decimals_cache.get(key)
        if decimals is None:
            token = get_deployed_contract(self.get_web3(chain, config), "ERC20.json", token_address)
            decimals = await run_blocking(token.functions.decimals().call)
            self.decimals_cache[key] = decimals
            logger.info("Token %s on %s has %d decimals", token_address, chain.name, decimals)
        else:
            logger.debug("Decimals cache hit %s", key)
        return decimals
