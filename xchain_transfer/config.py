"""Transfer configuration.

Key material and RPC endpoints are read from the process environment exactly once,
at the script entry point, and then passed around as a :py:class:`TransferConfig`.

Environment variables:

- ``NETWORK``: ``Testnet`` (default) or ``Mainnet``

- ``EVM_PRIVATE_KEY``: 0x-prefixed private key used to sign on all EVM chains

- ``SOL_PRIVATE_KEY``: Solana key, for a Solana platform adapter

- ``JSON_RPC_<CHAIN>``: JSON-RPC endpoint for a chain, e.g. ``JSON_RPC_SEPOLIA``
  or ``JSON_RPC_ARBITRUM_SEPOLIA``

- ``ATTESTATION_TIMEOUT``: seconds to wait for the attestation, default 60

Example:

.. code-block:: python

    from dotenv import load_dotenv
    from xchain_transfer.config import load_config

    load_dotenv()
    config = load_config()
"""

import os
import re
from dataclasses import dataclass, field
from typing import Mapping, Optional

from xchain_transfer.chain import PLATFORM_EVM, PLATFORM_SOLANA, ChainEndpoint, Network, get_chain_names

#: Default bound for waiting the attestation, seconds
DEFAULT_ATTESTATION_TIMEOUT = 60.0

#: Default bound for waiting a transaction receipt, seconds
DEFAULT_RECEIPT_TIMEOUT = 300.0


class ConfigurationError(Exception):
    """Configuration is missing or malformed."""


def get_rpc_environment_variable(chain_name: str) -> str:
    """Environment variable name holding a chain's RPC URL.

    ``"ArbitrumSepolia"`` maps to ``JSON_RPC_ARBITRUM_SEPOLIA``.
    """
    return "JSON_RPC_" + re.sub(r"(?<!^)(?=[A-Z])", "_", chain_name).upper()


@dataclass
class TransferConfig:
    """Explicit process configuration.

    Private keys are excluded from ``repr()`` so the config can be logged.
    """

    #: Which network we operate on
    network: Network = Network.testnet

    #: Private key used on EVM chains
    evm_private_key: Optional[str] = field(default=None, repr=False)

    #: Private key used on Solana
    solana_private_key: Optional[str] = field(default=None, repr=False)

    #: Chain name -> JSON-RPC URL overrides
    rpc_urls: dict[str, str] = field(default_factory=dict)

    #: How long to wait for the attestation
    attestation_timeout: float = DEFAULT_ATTESTATION_TIMEOUT

    #: How long to wait for a transaction to be mined
    receipt_timeout: float = DEFAULT_RECEIPT_TIMEOUT

    def get_rpc_url(self, chain: ChainEndpoint) -> Optional[str]:
        """Configured RPC URL, or the chain's public default."""
        return self.rpc_urls.get(chain.name) or chain.rpc_url

    def get_private_key(self, platform: str) -> str:
        """Key material for a chain platform.

        :raise ConfigurationError:
            If no key is configured for the platform
        """
        if platform == PLATFORM_EVM:
            key, variable = self.evm_private_key, "EVM_PRIVATE_KEY"
        elif platform == PLATFORM_SOLANA:
            key, variable = self.solana_private_key, "SOL_PRIVATE_KEY"
        else:
            raise ConfigurationError(f"No key material known for platform {platform}")

        if not key:
            raise ConfigurationError(f"Set {variable} environment variable to sign on {platform} chains")
        return key


def load_config(environ: Mapping[str, str] | None = None) -> TransferConfig:
    """Read :py:class:`TransferConfig` from environment variables.

    :param environ:
        Defaults to ``os.environ``
    """
    if environ is None:
        environ = os.environ

    try:
        network = Network.from_name(environ.get("NETWORK", Network.testnet.value))
    except ValueError as e:
        raise ConfigurationError(str(e)) from e

    evm_private_key = environ.get("EVM_PRIVATE_KEY") or None
    if evm_private_key is not None and not evm_private_key.startswith("0x"):
        raise ConfigurationError("EVM_PRIVATE_KEY must start with 0x hex prefix")

    rpc_urls = {}
    for name in get_chain_names(network):
        url = environ.get(get_rpc_environment_variable(name))
        if url:
            rpc_urls[name] = url

    timeout = environ.get("ATTESTATION_TIMEOUT")
    try:
        attestation_timeout = float(timeout) if timeout else DEFAULT_ATTESTATION_TIMEOUT
    except ValueError as e:
        raise ConfigurationError(f"ATTESTATION_TIMEOUT is not a number: {timeout}") from e

    return TransferConfig(
        network=network,
        evm_private_key=evm_private_key,
        solana_private_key=environ.get("SOL_PRIVATE_KEY") or None,
        rpc_urls=rpc_urls,
        attestation_timeout=attestation_timeout,
    )
