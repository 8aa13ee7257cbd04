"""Wormhole Token Bridge deployments.

Unlike CCTP, the Wormhole contracts have a different address on each chain.

- `Wormhole contract addresses <https://wormhole.com/docs/products/reference/contract-addresses/>`_
"""

from eth_typing import HexAddress

from xchain_transfer.chain import Network

#: Wormhole core bridge, emits ``LogMessagePublished``
WORMHOLE_CORE: dict[Network, dict[str, HexAddress]] = {
    Network.mainnet: {
        "Ethereum": HexAddress("0x98f3c9e6E3fAce36bAAd05FE09d375Ef1464288B"),
        "Avalanche": HexAddress("0x54a8e5f9c4CbA08F9943965859F6c34eAF03E26c"),
        "Polygon": HexAddress("0x7A4B5a56256163F07b2C80A7cA55aBE66c4ec4d7"),
        "Arbitrum": HexAddress("0xa5f208e072434bC67592E4C49C1B991BA79BCA46"),
        "Optimism": HexAddress("0xEe91C335eab126dF5fDB3797EA9d6aD93aeC9722"),
        "Base": HexAddress("0xbebdb6C8ddC678FfA9f8748f85C815C556Dd8ac6"),
    },
    Network.testnet: {
        "Sepolia": HexAddress("0x4a8bc80Ed5a4067f1CCf107057b8270E0cC11A78"),
        "Avalanche": HexAddress("0x7bbcE28e64B3F8b84d876Ab298393c38ad7aac4C"),
        "ArbitrumSepolia": HexAddress("0x6b9C8671cdDC8dEab9c719bB87cBd3e782bA6a35"),
        "BaseSepolia": HexAddress("0x79A1027a6A159502049F10906D333EC57E95F083"),
        "OptimismSepolia": HexAddress("0x31377888146f3253211EFEf5c676D41ECe7D58Fe"),
    },
}

#: Token Bridge, the emitter of token transfer messages
TOKEN_BRIDGE: dict[Network, dict[str, HexAddress]] = {
    Network.mainnet: {
        "Ethereum": HexAddress("0x3ee18B2214AFF97000D974cf647E7C347E8fa585"),
        "Avalanche": HexAddress("0x0e082F06FF657D94310cB8cE8B0D9a04541d8052"),
        "Polygon": HexAddress("0x5a58505a96D1dbf8dF91cB21B54419FC36e93fdE"),
        "Arbitrum": HexAddress("0x0b2402144Bb366A632D14B83F244D2e0e21bD39c"),
        "Optimism": HexAddress("0x1D68124e65faFC907325e3EDbF8c4d84499DAa8b"),
        "Base": HexAddress("0x8d2de8d2f73F1F4cAB472AC9A881C9b123C79627"),
    },
    Network.testnet: {
        "Sepolia": HexAddress("0xDB5492265f6038831E89f495670FF909aDe94bd9"),
        "Avalanche": HexAddress("0x61E44E506Ca5659E6c0bba9b678586fA2d729756"),
        "ArbitrumSepolia": HexAddress("0xC7A204bDBFe983FCD8d8E61D02b475D4073fF97e"),
        "BaseSepolia": HexAddress("0x86F55A04690fd7815A3D802bD587e83eA888B239"),
        "OptimismSepolia": HexAddress("0x99737Ec4B815d816c49A385943baf0380e75c0Ac"),
    },
}

#: Wormholescan API serving signed VAAs
WORMHOLESCAN_API_URLS: dict[Network, str] = {
    Network.mainnet: "https://api.wormholescan.io",
    Network.testnet: "https://api.testnet.wormholescan.io",
}

#: Token Bridge moves amounts with at most 8 decimals, the rest is left behind
MAX_TRANSFER_DECIMALS = 8

#: Token Bridge payload id of a plain transfer
PAYLOAD_TRANSFER = 1

#: Token Bridge payload id of a transfer carrying an application payload
PAYLOAD_TRANSFER_WITH_PAYLOAD = 3

#: Wormhole Token Bridge Relayer, delivers automatic transfers and drops off native gas.
#:
#: Chains missing here only do manual transfers.
TOKEN_BRIDGE_RELAYER: dict[Network, dict[str, HexAddress]] = {
    Network.mainnet: {
        "Ethereum": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
        "Avalanche": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
        "Polygon": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
        "Arbitrum": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
        "Optimism": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
        "Base": HexAddress("0xcafd2f0a35a4459fa40c0517e17e6fa2939441ca"),
    },
    Network.testnet: {
        "Sepolia": HexAddress("0x7fb0d63258caf51d8a35130d3f7a7fd1ee893969"),
        "Avalanche": HexAddress("0x9563a59c15842a6f322b10f69d1dd88b41f2e97b"),
    },
}

#: Decimals the Token Bridge Relayer assumes for the wrapped native token
NATIVE_TOKEN_DECIMALS = 18

#: Token Bridge Relayer message id inside a payload 3 transfer
RELAYER_PAYLOAD_TRANSFER_WITH_RELAY = 1
