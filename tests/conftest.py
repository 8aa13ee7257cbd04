"""Shared fixtures for offline tests."""

import pytest

from xchain_transfer.cctp.constants import USDC_TOKEN
from xchain_transfer.chain import Network, get_chain_config
from xchain_transfer.config import TransferConfig
from xchain_transfer.environment import ChainEnvironment
from xchain_transfer.testing import TEST_PRIVATE_KEY, MockPlatform, create_mock_signer


@pytest.fixture()
def fuji_usdc() -> str:
    return USDC_TOKEN[Network.testnet]["Avalanche"]


@pytest.fixture()
def config() -> TransferConfig:
    return TransferConfig(network=Network.testnet, evm_private_key=TEST_PRIVATE_KEY)


@pytest.fixture()
def mock_environment(config, fuji_usdc) -> ChainEnvironment:
    """Environment with a mock EVM platform that knows USDC decimals."""
    return ChainEnvironment(config, [MockPlatform(decimals={fuji_usdc: 6})])


@pytest.fixture()
def avalanche():
    return get_chain_config(Network.testnet, "Avalanche")


@pytest.fixture()
def sepolia():
    return get_chain_config(Network.testnet, "Sepolia")


@pytest.fixture()
def source(avalanche):
    return create_mock_signer(avalanche)


@pytest.fixture()
def destination(sepolia):
    return create_mock_signer(sepolia, "0x0000000000000000000000000000000000000002")
