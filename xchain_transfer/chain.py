"""Chain specific configuration.

Static table of the networks and chains a transfer can move between.

- Chains are addressed by their human-readable name, like ``"Sepolia"`` or ``"Avalanche"``,
  within a :py:class:`Network`

- Each chain carries the identifiers different protocols use for it:
  EVM chain id, Wormhole chain id and Circle CCTP domain
"""

import enum
from dataclasses import dataclass
from typing import Optional


class UnknownChain(ValueError):
    """Chain name or identifier is not in the chain table."""


class Network(enum.Enum):
    """Named environment a set of chains live in."""

    mainnet = "Mainnet"

    testnet = "Testnet"

    @classmethod
    def from_name(cls, name: str) -> "Network":
        """Case-insensitive lookup, ``"testnet"`` and ``"Testnet"`` both work."""
        for member in cls:
            if member.value.lower() == name.strip().lower():
                return member
        raise ValueError(f"Unknown network {name}, expected one of {[m.value for m in cls]}")


#: Platform name of EVM chains
PLATFORM_EVM = "Evm"

#: Platform name of Solana
PLATFORM_SOLANA = "Solana"


@dataclass(slots=True, frozen=True)
class ChainEndpoint:
    """A supported chain within a network.

    Immutable once resolved.
    """

    #: Network this chain belongs to
    network: Network

    #: Human-readable name, like ``"Sepolia"``
    name: str

    #: Chain platform, see :py:data:`PLATFORM_EVM`
    platform: str

    #: Wormhole chain id
    wormhole_chain_id: int

    #: Decimals of the native gas token
    native_token_decimals: int

    #: Symbol of the native gas token
    native_token_symbol: str

    #: EVM chain id, ``None`` for non-EVM chains
    evm_chain_id: Optional[int] = None

    #: Circle CCTP domain, ``None`` when CCTP is not deployed
    cctp_domain: Optional[int] = None

    #: Public JSON-RPC endpoint used when nothing is configured
    rpc_url: Optional[str] = None

    def __repr__(self):
        return f"<Chain {self.name} ({self.network.value})>"

    @property
    def is_evm(self) -> bool:
        return self.platform == PLATFORM_EVM


@dataclass(slots=True, frozen=True)
class ChainAddress:
    """An address on a specific chain."""

    chain: ChainEndpoint

    address: str

    def __repr__(self):
        return f"<{self.chain.name}:{self.address}>"


def _evm(network, name, wormhole_chain_id, evm_chain_id, cctp_domain, rpc_url, symbol="ETH") -> ChainEndpoint:
    return ChainEndpoint(
        network=network,
        name=name,
        platform=PLATFORM_EVM,
        wormhole_chain_id=wormhole_chain_id,
        native_token_decimals=18,
        native_token_symbol=symbol,
        evm_chain_id=evm_chain_id,
        cctp_domain=cctp_domain,
        rpc_url=rpc_url,
    )


_MAINNET_CHAINS = [
    ChainEndpoint(Network.mainnet, "Solana", PLATFORM_SOLANA, 1, 9, "SOL", cctp_domain=5, rpc_url="https://api.mainnet-beta.solana.com"),
    _evm(Network.mainnet, "Ethereum", 2, 1, 0, "https://ethereum-rpc.publicnode.com"),
    _evm(Network.mainnet, "Polygon", 5, 137, 7, "https://polygon-rpc.com", symbol="POL"),
    _evm(Network.mainnet, "Avalanche", 6, 43114, 1, "https://api.avax.network/ext/bc/C/rpc", symbol="AVAX"),
    _evm(Network.mainnet, "Arbitrum", 23, 42161, 3, "https://arb1.arbitrum.io/rpc"),
    _evm(Network.mainnet, "Optimism", 24, 10, 2, "https://mainnet.optimism.io"),
    _evm(Network.mainnet, "Base", 30, 8453, 6, "https://mainnet.base.org"),
]

_TESTNET_CHAINS = [
    ChainEndpoint(Network.testnet, "Solana", PLATFORM_SOLANA, 1, 9, "SOL", cctp_domain=5, rpc_url="https://api.devnet.solana.com"),
    _evm(Network.testnet, "Avalanche", 6, 43113, 1, "https://api.avax-test.network/ext/bc/C/rpc", symbol="AVAX"),
    _evm(Network.testnet, "Sepolia", 10002, 11155111, 0, "https://ethereum-sepolia-rpc.publicnode.com"),
    _evm(Network.testnet, "ArbitrumSepolia", 10003, 421614, 3, "https://sepolia-rollup.arbitrum.io/rpc"),
    _evm(Network.testnet, "BaseSepolia", 10004, 84532, 6, "https://sepolia.base.org"),
    _evm(Network.testnet, "OptimismSepolia", 10005, 11155420, 2, "https://sepolia.optimism.io"),
    _evm(Network.testnet, "PolygonSepolia", 10007, 80002, 7, "https://rpc-amoy.polygon.technology", symbol="POL"),
]

#: All known chains, by network and name
CHAINS: dict[Network, dict[str, ChainEndpoint]] = {
    Network.mainnet: {c.name: c for c in _MAINNET_CHAINS},
    Network.testnet: {c.name: c for c in _TESTNET_CHAINS},
}

#: List of EVM chain ids that need to have proof-of-authority middleware installed
POA_MIDDLEWARE_NEEDED_CHAIN_IDS = {
    56,  # BNB Chain
    137,  # Polygon
    43114,  # Avalanche C-chain
    43113,  # Avalanche Fuji
    80002,  # Polygon Amoy
}


def get_chain_names(network: Network) -> list[str]:
    return list(CHAINS[network].keys())


def get_chain_config(network: Network, name: str) -> ChainEndpoint:
    """Resolve a chain by its human-readable name.

    :raise UnknownChain:
        If the network has no such chain
    """
    assert isinstance(network, Network), f"Got {type(network)}"
    try:
        return CHAINS[network][name]
    except KeyError as e:
        raise UnknownChain(f"Chain {name} is not supported on {network.value}. Supported chains: {get_chain_names(network)}") from e


def _find(network: Network, attr: str, value: int) -> ChainEndpoint:
    for chain in CHAINS[network].values():
        if getattr(chain, attr) == value:
            return chain
    raise UnknownChain(f"No chain with {attr}={value} on {network.value}")


def get_chain_by_evm_chain_id(network: Network, chain_id: int) -> ChainEndpoint:
    return _find(network, "evm_chain_id", chain_id)


def get_chain_by_wormhole_id(network: Network, wormhole_chain_id: int) -> ChainEndpoint:
    return _find(network, "wormhole_chain_id", wormhole_chain_id)


def get_chain_by_cctp_domain(network: Network, domain: int) -> ChainEndpoint:
    return _find(network, "cctp_domain", domain)
