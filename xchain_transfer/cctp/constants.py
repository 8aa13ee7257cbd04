"""Circle CCTP V2 constants.

Cross-Chain Transfer Protocol V2 deployment addresses and API endpoints.

CCTP enables burn-and-mint USDC transfers across chains:

1. Source chain: call ``depositForBurn()`` on TokenMessengerV2 to burn USDC
2. Circle's Iris attestation service signs the burn event
3. Destination chain: call ``receiveMessage()`` on MessageTransmitterV2 to mint USDC

All CCTP V2 contracts share the same address across the EVM chains of a network (deployed via CREATE2).
CCTP domain ids are stored in :py:attr:`xchain_transfer.chain.ChainEndpoint.cctp_domain`.

- `CCTP V2 documentation <https://developers.circle.com/cctp>`_
- `EVM contract addresses <https://developers.circle.com/cctp/evm-smart-contracts>`_
"""

from eth_typing import HexAddress

from xchain_transfer.chain import Network

#: CCTP V2 TokenMessengerV2 - entry point for cross-chain USDC transfers.
TOKEN_MESSENGER_V2: dict[Network, HexAddress] = {
    Network.mainnet: HexAddress("0x28b5a0e9C621a5BadaA536219b3a228C8168cf5d"),
    Network.testnet: HexAddress("0x8FE6B999Dc680CcFDD5Bf7EB0974218be2542DAA"),
}

#: CCTP V2 MessageTransmitterV2 - handles message passing and attestation verification.
MESSAGE_TRANSMITTER_V2: dict[Network, HexAddress] = {
    Network.mainnet: HexAddress("0x81D40F21F12A8F0E3252Bccb954D722d4c464B64"),
    Network.testnet: HexAddress("0xE737e5cEBEEBa77EFE34D4aa090756590b1CE275"),
}

#: Circle Iris attestation API
IRIS_API_URLS: dict[Network, str] = {
    Network.mainnet: "https://iris-api.circle.com",
    Network.testnet: "https://iris-api-sandbox.circle.com",
}

#: Native USDC by chain name and network
USDC_TOKEN: dict[Network, dict[str, HexAddress]] = {
    Network.mainnet: {
        "Ethereum": HexAddress("0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"),
        "Avalanche": HexAddress("0xB97EF9Ef8734C71904D8002F8b6Bc66Dd9c48a6E"),
        "Arbitrum": HexAddress("0xaf88d065e77c8cC2239327C5EDb3A432268e5831"),
        "Base": HexAddress("0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"),
        "Optimism": HexAddress("0x0b2C639c533813f4Aa9D7837CAf62653d097Ff85"),
        "Polygon": HexAddress("0x3c499c542cEF5E3811e1192ce70d8cC03d5c3359"),
    },
    Network.testnet: {
        "Sepolia": HexAddress("0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"),
        "Avalanche": HexAddress("0x5425890298aed601595a70AB815c96711a31Bc65"),
        "ArbitrumSepolia": HexAddress("0x75faf114eafb1BDbe2F0316DF893fd58CE46AA4d"),
        "BaseSepolia": HexAddress("0x036CbD53842c5426634e7929541eC2318f3dCF7e"),
        "OptimismSepolia": HexAddress("0x5fd84259d66Cd46123540766Be93DFE6D43130D7"),
        "PolygonSepolia": HexAddress("0x41E94Eb019C0762f9Bfcf9Fb1E58725BfB0e7582"),
    },
}

#: USDC has 6 decimals on every chain
USDC_DECIMALS = 6

#: Minimum finality threshold for standard (finalized) transfers.
FINALITY_THRESHOLD_STANDARD = 2000

#: Minimum finality threshold for fast (confirmed) transfers.
#: Uses lower block confirmation, may incur fees.
FINALITY_THRESHOLD_FAST = 1000

#: Fast transfer fee we are willing to pay, in basis points of the amount
DEFAULT_FAST_TRANSFER_FEE_BPS = 1

#: HTTP 404 status code indicating resource not found
HTTP_NOT_FOUND = 404
