"""CCTP V2 test helpers.

Craft messages and attestations the way Circle's Iris service would return them,
so the protocol can be exercised without the attestation service.

Example::

    from xchain_transfer.cctp.testing import craft_cctp_message, forge_attestation

    message = craft_cctp_message(
        source_domain=0,  # Ethereum Sepolia
        destination_domain=1,  # Avalanche Fuji
        nonce=1,
        mint_recipient=recipient,
        amount=1_000_000,  # 1 USDC
        burn_token=usdc,
    )
    attestation = forge_attestation(message, Account.create())
"""

import struct

from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from web3 import Web3

from xchain_transfer.cctp.constants import FINALITY_THRESHOLD_STANDARD, TOKEN_MESSENGER_V2
from xchain_transfer.cctp.transfer import encode_mint_recipient
from xchain_transfer.chain import Network

#: CCTP message version for V2 protocol
CCTP_MESSAGE_VERSION = 1

#: Burn message body version
BURN_MESSAGE_VERSION = 1


def craft_cctp_message(
    source_domain: int,
    destination_domain: int,
    nonce: int,
    mint_recipient: HexAddress | str,
    amount: int,
    burn_token: HexAddress | str,
    min_finality_threshold: int = FINALITY_THRESHOLD_STANDARD,
    max_fee: int = 0,
    network: Network = Network.testnet,
) -> bytes:
    """Craft a packed CCTP V2 message header and burn message body.

    See :py:mod:`xchain_transfer.cctp.message` for the layout.

    :param nonce:
        Unique nonce, encoded as bytes32

    :param burn_token:
        USDC address on the **source** chain

    :return:
        Packed message bytes (376 bytes total)
    """
    # TokenMessenger is the sender and the recipient in the message header
    token_messenger_bytes32 = encode_mint_recipient(TOKEN_MESSENGER_V2[network])

    body = struct.pack(">I", BURN_MESSAGE_VERSION)
    body += encode_mint_recipient(burn_token)
    body += encode_mint_recipient(mint_recipient)
    body += amount.to_bytes(32, byteorder="big")
    body += token_messenger_bytes32
    body += max_fee.to_bytes(32, byteorder="big")
    body += b"\x00" * 32  # feeExecuted, set by attester
    body += b"\x00" * 32  # expirationBlock, set by attester

    header = struct.pack(">III", CCTP_MESSAGE_VERSION, source_domain, destination_domain)
    header += nonce.to_bytes(32, byteorder="big")
    header += token_messenger_bytes32
    header += token_messenger_bytes32
    header += b"\x00" * 32  # destinationCaller, anyone can relay
    header += struct.pack(">II", min_finality_threshold, min_finality_threshold)

    return header + body


def forge_attestation(message: bytes, attester: LocalAccount) -> bytes:
    """Sign a message hash with a test attester.

    MessageTransmitterV2 verifies ECDSA signatures over ``keccak256(message)``.

    :return:
        65 bytes ``r || s || v``
    """
    signed = attester.unsafe_sign_hash(Web3.keccak(message))
    return signed.r.to_bytes(32, "big") + signed.s.to_bytes(32, "big") + signed.v.to_bytes(1, "big")
