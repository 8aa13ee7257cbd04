"""CCTP V2 message decoding.

Message header (148 bytes):

- ``uint32 version`` (4 bytes)
- ``uint32 sourceDomain`` (4 bytes)
- ``uint32 destinationDomain`` (4 bytes)
- ``bytes32 nonce`` (32 bytes)
- ``bytes32 sender`` (32 bytes), TokenMessenger on source
- ``bytes32 recipient`` (32 bytes), TokenMessenger on dest
- ``bytes32 destinationCaller`` (32 bytes), 0x00 for anyone
- ``uint32 minFinalityThreshold`` (4 bytes)
- ``uint32 finalityThresholdExecuted`` (4 bytes)

Burn message body (228 bytes):

- ``uint32 version`` (4 bytes)
- ``bytes32 burnToken`` (32 bytes)
- ``bytes32 mintRecipient`` (32 bytes)
- ``uint256 amount`` (32 bytes)
- ``bytes32 messageSender`` (32 bytes)
- ``uint256 maxFee`` (32 bytes)
- ``uint256 feeExecuted`` (32 bytes)
- ``uint256 expirationBlock`` (32 bytes)

See `Circle's CCTP contracts <https://github.com/circlefin/evm-cctp-contracts>`__.
"""

import struct
from dataclasses import dataclass

from web3 import Web3

#: Header length in bytes
HEADER_LENGTH = 148

#: Burn message body length in bytes
BURN_BODY_LENGTH = 228


@dataclass(slots=True, frozen=True)
class CCTPBurnMessage:
    """Decoded CCTP V2 burn message."""

    version: int

    source_domain: int

    destination_domain: int

    #: Unique per source domain, used for replay protection on the destination
    nonce: bytes

    destination_caller: bytes

    min_finality_threshold: int

    finality_threshold_executed: int

    #: Source chain USDC address
    burn_token: str

    mint_recipient: str

    amount: int

    max_fee: int

    fee_executed: int


def _bytes32_to_address(value: bytes) -> str:
    return Web3.to_checksum_address(value[12:])


def decode_burn_message(message: bytes) -> CCTPBurnMessage:
    """Decode a CCTP V2 message carrying a burn.

    :raise ValueError:
        If the message is too short
    """
    if len(message) < HEADER_LENGTH + BURN_BODY_LENGTH:
        raise ValueError(f"CCTP burn message must be at least {HEADER_LENGTH + BURN_BODY_LENGTH} bytes, got {len(message)}")

    version, source_domain, destination_domain = struct.unpack(">III", message[0:12])
    nonce = message[12:44]
    destination_caller = message[108:140]
    min_finality_threshold, finality_threshold_executed = struct.unpack(">II", message[140:148])

    body = message[HEADER_LENGTH:]
    burn_token = body[4:36]
    mint_recipient = body[36:68]
    amount = int.from_bytes(body[68:100], "big")
    max_fee = int.from_bytes(body[132:164], "big")
    fee_executed = int.from_bytes(body[164:196], "big")

    return CCTPBurnMessage(
        version=version,
        source_domain=source_domain,
        destination_domain=destination_domain,
        nonce=nonce,
        destination_caller=destination_caller,
        min_finality_threshold=min_finality_threshold,
        finality_threshold_executed=finality_threshold_executed,
        burn_token=_bytes32_to_address(burn_token),
        mint_recipient=_bytes32_to_address(mint_recipient),
        amount=amount,
        max_fee=max_fee,
        fee_executed=fee_executed,
    )
