"""Token Bridge test helpers.

Build VAAs the way the guardians would sign them. The signatures are
filler bytes: nothing here verifies them.
"""

import struct

from xchain_transfer.tokenbridge.constants import PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD, RELAYER_PAYLOAD_TRANSFER_WITH_RELAY
from xchain_transfer.tokenbridge.vaa import to_bytes32


def craft_token_transfer_payload(
    amount: int,
    token_address: str,
    token_chain: int,
    to: str,
    to_chain: int,
    fee: int = 0,
    from_address: str | None = None,
    payload: bytes | None = None,
) -> bytes:
    """Pack a Token Bridge payload 1, or payload 3 when ``payload`` is given.

    :param amount:
        Amount normalised to 8 decimals
    """
    payload_id = PAYLOAD_TRANSFER if payload is None else PAYLOAD_TRANSFER_WITH_PAYLOAD
    data = bytes([payload_id])
    data += amount.to_bytes(32, "big")
    data += to_bytes32(token_address)
    data += struct.pack(">H", token_chain)
    data += to_bytes32(to)
    data += struct.pack(">H", to_chain)
    if payload is None:
        data += fee.to_bytes(32, "big")
    else:
        assert from_address, "Transfer with payload needs a sender"
        data += to_bytes32(from_address)
        data += payload
    return data


def craft_transfer_with_relay(target_relayer_fee: int, to_native_token_amount: int, target_recipient: str) -> bytes:
    """Pack the Token Bridge Relayer message carried by a relayed payload 3."""
    data = bytes([RELAYER_PAYLOAD_TRANSFER_WITH_RELAY])
    data += target_relayer_fee.to_bytes(32, "big")
    data += to_native_token_amount.to_bytes(32, "big")
    data += to_bytes32(target_recipient)
    return data

def craft_vaa(
    emitter_chain: int,
    emitter_address: str,
    sequence: int,
    payload: bytes,
    signature_count: int = 1,
    guardian_set_index: int = 0,
    timestamp: int = 1_700_000_000,
    nonce: int = 0,
    consistency_level: int = 1,
) -> bytes:
    """Pack a version 1 VAA."""
    data = struct.pack(">BIB", 1, guardian_set_index, signature_count)
    for i in range(signature_count):
        data += bytes([i]) + b"\x01" * 65
    data += struct.pack(">IIH", timestamp, nonce, emitter_chain)
    data += to_bytes32(emitter_address)
    data += struct.pack(">QB", sequence, consistency_level)
    data += payload
    return data
