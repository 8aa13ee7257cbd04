"""Chain environment.

:py:class:`ChainEnvironment` is the entry point scripts hold on to:
it resolves chains by name, creates signers from the explicit configuration,
looks up token decimals and keeps the registered transfer protocols.

Example:

.. code-block:: python

    config = load_config()
    environment = create_default_environment(config)

    send_chain = environment.get_chain("Sepolia")
    source = await environment.get_signer(send_chain)
"""

import logging

from xchain_transfer.chain import ChainEndpoint, Network, get_chain_config
from xchain_transfer.config import TransferConfig
from xchain_transfer.platform import ChainPlatformAdapter, PlatformRegistry, SignerHandle
from xchain_transfer.token import TokenReference, token_id
from xchain_transfer.transfer import TransferProtocol

logger = logging.getLogger(__name__)


class ChainEnvironment:
    """Chains of one network, with the platforms and protocols registered for them."""

    def __init__(
        self,
        config: TransferConfig,
        platforms: PlatformRegistry | list[ChainPlatformAdapter],
    ):
        assert isinstance(config, TransferConfig), f"Got {type(config)}"
        self.config = config
        self.platforms = platforms if isinstance(platforms, PlatformRegistry) else PlatformRegistry(platforms)
        self.protocols: dict[str, TransferProtocol] = {}

    def __repr__(self):
        return f"<ChainEnvironment {self.network.value} platforms:{list(self.platforms.adapters.keys())} protocols:{list(self.protocols.keys())}>"

    @property
    def network(self) -> Network:
        return self.config.network

    def get_chain(self, name: str) -> ChainEndpoint:
        """Resolve a chain by name.

        :raise UnknownChain:
            The network does not have such chain

        :raise UnsupportedPlatform:
            No adapter for the chain's platform was registered
        """
        chain = get_chain_config(self.network, name)
        # Fail early, not when the signer is needed
        self.platforms.get(chain.platform)
        return chain

    def get_platform(self, chain: ChainEndpoint) -> ChainPlatformAdapter:
        return self.platforms.get(chain.platform)

    async def get_signer(self, chain: ChainEndpoint) -> SignerHandle:
        """Create a signer for a chain from the configured key material."""
        signer = await self.get_platform(chain).get_signer(chain, self.config)
        logger.info("Signer for %s: %s", chain.name, signer.address.address)
        return signer

    async def get_decimals(self, token: TokenReference) -> int:
        """Decimal precision of a token, native or contract."""
        if token.is_native:
            return token.chain.native_token_decimals
        return await self.get_platform(token.chain).get_decimals(token.chain, self.config, token.address)

    def token_id(self, chain: ChainEndpoint, address: str) -> TokenReference:
        return token_id(chain, address)

    def register_protocol(self, protocol: TransferProtocol):
        assert isinstance(protocol, TransferProtocol), f"Got {type(protocol)}"
        assert protocol.name not in self.protocols, f"Protocol {protocol.name} already registered"
        self.protocols[protocol.name] = protocol

    def get_protocol(self, name: str) -> TransferProtocol:
        try:
            return self.protocols[name]
        except KeyError as e:
            raise ValueError(f"Unknown transfer protocol {name}. Registered: {list(self.protocols.keys())}") from e


def create_default_environment(config: TransferConfig) -> ChainEnvironment:
    """Environment with the EVM platform and the CCTP and Token Bridge protocols."""
    # Import here to keep the core free of web3 imports
    from xchain_transfer.cctp.protocol import CCTPProtocol
    from xchain_transfer.evm.platform import EVMPlatform
    from xchain_transfer.tokenbridge.protocol import TokenBridgeProtocol

    environment = ChainEnvironment(config, [EVMPlatform()])
    environment.register_protocol(TokenBridgeProtocol(environment))
    environment.register_protocol(CCTPProtocol(environment))
    return environment
