"""Chain platform adapters.

A platform adapter knows how to sign and read on one family of chains (EVM, Solana).
Adapters are registered into a :py:class:`PlatformRegistry` at startup
and the rest of the code only sees the abstract contracts defined here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

from xchain_transfer.chain import ChainAddress, ChainEndpoint
from xchain_transfer.config import TransferConfig

logger = logging.getLogger(__name__)


class UnsupportedPlatform(ValueError):
    """No adapter registered for a chain platform."""


class ChainSigner(ABC):
    """Signing capability on a single chain."""

    @property
    @abstractmethod
    def chain(self) -> ChainEndpoint:
        """The chain this signer signs for."""

    @property
    @abstractmethod
    def address(self) -> str:
        """Native address format of the signer on its chain."""


@dataclass(slots=True, frozen=True)
class SignerHandle:
    """A signer paired with the chain and address it acts on."""

    chain: ChainEndpoint

    address: ChainAddress

    signer: ChainSigner

    def __repr__(self):
        return f"<Signer {self.address.address} on {self.chain.name}>"


class ChainPlatformAdapter(ABC):
    """Contract every chain platform implements."""

    #: Platform name this adapter serves, matching :py:attr:`ChainEndpoint.platform`
    platform: str

    @abstractmethod
    async def get_signer(self, chain: ChainEndpoint, config: TransferConfig) -> SignerHandle:
        """Create a signer for a chain from the configured key material."""

    @abstractmethod
    async def get_decimals(self, chain: ChainEndpoint, config: TransferConfig, token_address: str) -> int:
        """Read the decimal precision of a token contract."""


class PlatformRegistry:
    """Platform name -> adapter."""

    def __init__(self, adapters: list[ChainPlatformAdapter] | None = None):
        self.adapters: dict[str, ChainPlatformAdapter] = {}
        for adapter in adapters or []:
            self.register(adapter)

    def __repr__(self):
        return f"<PlatformRegistry {list(self.adapters.keys())}>"

    def __contains__(self, platform: str) -> bool:
        return platform in self.adapters

    def register(self, adapter: ChainPlatformAdapter):
        assert isinstance(adapter, ChainPlatformAdapter), f"Got {type(adapter)}"
        if adapter.platform in self.adapters:
            raise ValueError(f"Platform {adapter.platform} already has an adapter: {self.adapters[adapter.platform]}")
        logger.debug("Registered platform adapter %s for %s", adapter, adapter.platform)
        self.adapters[adapter.platform] = adapter

    def get(self, platform: str) -> ChainPlatformAdapter:
        try:
            return self.adapters[platform]
        except KeyError as e:
            raise UnsupportedPlatform(f"No adapter registered for platform {platform}. Registered: {list(self.adapters.keys())}") from e
