"""Minting on the destination chain.

Once Iris has signed a burn, anyone can hand the message and the attestation
to the destination MessageTransmitterV2, unless the burn named a ``destinationCaller``.
A relayer may already have done it: check :py:func:`is_message_received` first.
"""

import logging

from web3 import Web3
from web3.contract.contract import ContractFunction

from xchain_transfer.cctp.transfer import get_message_transmitter_v2
from xchain_transfer.chain import Network

logger = logging.getLogger(__name__)


def prepare_receive_message(
    web3: Web3,
    network: Network,
    message: bytes,
    attestation: bytes,
) -> ContractFunction:
    """Bound ``receiveMessage(message, attestation)`` call.

    :param web3:
        Connection to the **destination** chain
    """
    logger.info("receiveMessage with %d bytes message and %d bytes attestation", len(message), len(attestation))
    return get_message_transmitter_v2(web3, network).functions.receiveMessage(message, attestation)


def is_message_received(web3: Web3, network: Network, nonce: bytes) -> bool:
    """Has the message with this nonce been minted on the destination chain already.

    Blocking JSON-RPC call.
    """
    message_transmitter = get_message_transmitter_v2(web3, network)
    return message_transmitter.functions.usedNonces(nonce).call() != 0
