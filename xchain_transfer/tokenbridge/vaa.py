"""Wormhole VAA decoding.

A VAA (Verified Action Approval) is the guardian signed form of a message
published on the Wormhole core bridge.

VAA header:

- ``uint8 version``
- ``uint32 guardianSetIndex``
- ``uint8 signatureCount``
- 66 bytes per signature: ``uint8 guardianIndex``, 65 bytes ``r || s || v``

VAA body, the part guardians sign:

- ``uint32 timestamp``
- ``uint32 nonce``
- ``uint16 emitterChain``
- ``bytes32 emitterAddress``
- ``uint64 sequence``
- ``uint8 consistencyLevel``
- ``bytes payload``

A message is identified by ``emitterChain/emitterAddress/sequence``.
"""

import struct
from dataclasses import dataclass
from typing import Optional

from web3 import Web3

from xchain_transfer.tokenbridge.constants import MAX_TRANSFER_DECIMALS, PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD, RELAYER_PAYLOAD_TRANSFER_WITH_RELAY

#: Bytes of one guardian signature entry
SIGNATURE_LENGTH = 66

#: Bytes of the fixed part of the body before the payload
BODY_HEADER_LENGTH = 51


class VAAError(ValueError):
    """The bytes are not a VAA we understand."""


@dataclass(slots=True, frozen=True)
class VAA:
    """Decoded VAA."""

    version: int

    guardian_set_index: int

    #: Raw 66 byte signature entries
    signatures: tuple[bytes, ...]

    timestamp: int

    nonce: int

    emitter_chain: int

    emitter_address: bytes

    sequence: int

    consistency_level: int

    payload: bytes

    #: Signed part of the VAA
    body: bytes

    @property
    def digest(self) -> bytes:
        return vaa_digest(self.body)

    @property
    def message_id(self) -> str:
        return format_message_id(self.emitter_chain, self.emitter_address, self.sequence)


@dataclass(slots=True, frozen=True)
class TokenTransferPayload:
    """Decoded Token Bridge transfer payload.

    Amounts are normalised to at most 8 decimals.
    """

    payload_id: int

    amount: int

    #: Token address on its origin chain, as bytes32
    token_address: bytes

    #: Wormhole chain id of the token's origin chain
    token_chain: int

    #: Recipient, as bytes32
    to: bytes

    #: Wormhole chain id of the recipient
    to_chain: int

    #: Relayer fee of a plain transfer
    fee: Optional[int] = None

    #: Sender of a transfer with payload, as bytes32
    from_address: Optional[bytes] = None

    #: Application payload of a transfer with payload
    payload: Optional[bytes] = None

    @property
    def to_evm_address(self) -> str:
        return Web3.to_checksum_address(self.to[12:])


def parse_vaa(data: bytes) -> VAA:
    """Decode a signed VAA.

    :raise VAAError:
        If the VAA is truncated or of unknown version
    """
    if len(data) < 6:
        raise VAAError(f"VAA too short: {len(data)} bytes")

    version, guardian_set_index, signature_count = struct.unpack(">BIB", data[0:6])
    if version != 1:
        raise VAAError(f"Unsupported VAA version {version}")

    offset = 6
    body_offset = offset + signature_count * SIGNATURE_LENGTH
    if len(data) < body_offset + BODY_HEADER_LENGTH:
        raise VAAError(f"VAA with {signature_count} signatures too short: {len(data)} bytes")

    signatures = tuple(data[offset + i * SIGNATURE_LENGTH : offset + (i + 1) * SIGNATURE_LENGTH] for i in range(signature_count))

    body = data[body_offset:]
    timestamp, nonce, emitter_chain = struct.unpack(">IIH", body[0:10])
    emitter_address = body[10:42]
    sequence, consistency_level = struct.unpack(">QB", body[42:51])

    return VAA(
        version=version,
        guardian_set_index=guardian_set_index,
        signatures=signatures,
        timestamp=timestamp,
        nonce=nonce,
        emitter_chain=emitter_chain,
        emitter_address=emitter_address,
        sequence=sequence,
        consistency_level=consistency_level,
        payload=body[BODY_HEADER_LENGTH:],
        body=body,
    )


def decode_token_transfer_payload(payload: bytes) -> TokenTransferPayload:
    """Decode a Token Bridge payload 1 or 3.

    :raise VAAError:
        If the payload is not a token transfer
    """
    if not payload:
        raise VAAError("Empty payload")

    payload_id = payload[0]
    if payload_id not in (PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD):
        raise VAAError(f"Not a token transfer, payload id {payload_id}")

    if len(payload) < 133:
        raise VAAError(f"Token transfer payload too short: {len(payload)} bytes")

    amount = int.from_bytes(payload[1:33], "big")
    token_address = payload[33:65]
    (token_chain,) = struct.unpack(">H", payload[65:67])
    to = payload[67:99]
    (to_chain,) = struct.unpack(">H", payload[99:101])

    if payload_id == PAYLOAD_TRANSFER:
        return TokenTransferPayload(
            payload_id=payload_id,
            amount=amount,
            token_address=token_address,
            token_chain=token_chain,
            to=to,
            to_chain=to_chain,
            fee=int.from_bytes(payload[101:133], "big"),
        )

    return TokenTransferPayload(
        payload_id=payload_id,
        amount=amount,
        token_address=token_address,
        token_chain=token_chain,
        to=to,
        to_chain=to_chain,
        from_address=payload[101:133],
        payload=payload[133:],
    )


@dataclass(slots=True, frozen=True)
class TransferWithRelay:
    """Token Bridge Relayer message carried in the payload of a payload 3 transfer.

    Amounts are normalised to at most 8 decimals.
    """

    #: Relayer fee in the transferred token
    target_relayer_fee: int

    #: Part of the transfer the relayer swaps to destination native gas
    to_native_token_amount: int

    #: Final recipient, as bytes32
    target_recipient: bytes

    @property
    def recipient_evm_address(self) -> str:
        return Web3.to_checksum_address(self.target_recipient[12:])


def decode_transfer_with_relay(payload: bytes) -> TransferWithRelay:
    """Decode the application payload of a relayed transfer.

    ``uint8 payloadId, uint256 targetRelayerFee, uint256 toNativeTokenAmount, bytes32 targetRecipient``

    :raise VAAError:
        If the payload is not a Token Bridge Relayer message
    """
    if len(payload) != 97 or payload[0] != RELAYER_PAYLOAD_TRANSFER_WITH_RELAY:
        raise VAAError(f"Not a Token Bridge Relayer transfer: {payload[:1].hex()}, {len(payload)} bytes")

    return TransferWithRelay(
        target_relayer_fee=int.from_bytes(payload[1:33], "big"),
        to_native_token_amount=int.from_bytes(payload[33:65], "big"),
        target_recipient=payload[65:97],
    )


def vaa_digest(body: bytes) -> bytes:
    """Hash the Token Bridge uses to mark a VAA redeemed.

    Double keccak256 of the body.
    """
    return Web3.keccak(Web3.keccak(body))


def to_bytes32(address: str) -> bytes:
    """Left pad an EVM address to Wormhole's universal 32 byte address."""
    return bytes.fromhex(Web3.to_checksum_address(address)[2:].lower().zfill(64))


def format_message_id(emitter_chain: int, emitter_address: bytes, sequence: int) -> str:
    """Wormholescan style message id, like ``10002/000...bd9/42``."""
    assert len(emitter_address) == 32, f"Emitter must be bytes32, got {emitter_address.hex()}"
    return f"{emitter_chain}/{emitter_address.hex()}/{sequence}"


def parse_message_id(message_id: str) -> tuple[int, bytes, int]:
    """Inverse of :py:func:`format_message_id`.

    :raise VAAError:
        If the id is malformed
    """
    try:
        chain, emitter, sequence = message_id.split("/")
        emitter_address = bytes.fromhex(emitter)
        result = int(chain), emitter_address, int(sequence)
    except ValueError as e:
        raise VAAError(f"Bad message id {message_id}") from e

    if len(emitter_address) != 32:
        raise VAAError(f"Bad emitter in message id {message_id}")
    return result


def truncate_amount(amount: int, decimals: int) -> int:
    """Amount the Token Bridge actually moves.

    Anything beyond 8 decimals is dropped.
    """
    if decimals <= MAX_TRANSFER_DECIMALS:
        return amount
    scale = 10 ** (decimals - MAX_TRANSFER_DECIMALS)
    return amount - amount % scale
