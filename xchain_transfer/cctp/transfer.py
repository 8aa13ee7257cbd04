"""Circle CCTP V2 burn on the source chain.

Example of preparing a cross-chain transfer from Sepolia to Avalanche Fuji:

.. code-block:: python

    from xchain_transfer.cctp.transfer import prepare_deposit_for_burn, prepare_approve_for_burn

    # First approve USDC spending
    approve_fn = prepare_approve_for_burn(web3, Network.testnet, burn_token=usdc, amount=1_000_000)  # 1 USDC

    # Then initiate the cross-chain transfer
    burn_fn = prepare_deposit_for_burn(
        web3,
        Network.testnet,
        amount=1_000_000,
        destination_domain=1,  # Avalanche
        mint_recipient="0x...",  # Recipient on Avalanche
        burn_token=usdc,
    )

The ``burnToken`` is always the native USDC on the source chain.
The destination chain's ``TokenMinterV2`` resolves the local USDC address itself.
"""

import logging

from eth_typing import HexAddress
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction

from xchain_transfer.abi import get_deployed_contract
from xchain_transfer.cctp.constants import FINALITY_THRESHOLD_STANDARD, MESSAGE_TRANSMITTER_V2, TOKEN_MESSENGER_V2
from xchain_transfer.chain import Network

logger = logging.getLogger(__name__)


def get_token_messenger_v2(web3: Web3, network: Network) -> Contract:
    """Load the TokenMessengerV2 contract at its known address."""
    return get_deployed_contract(web3, "cctp/TokenMessengerV2.json", TOKEN_MESSENGER_V2[network])


def get_message_transmitter_v2(web3: Web3, network: Network) -> Contract:
    """Load the MessageTransmitterV2 contract at its known address."""
    return get_deployed_contract(web3, "cctp/MessageTransmitterV2.json", MESSAGE_TRANSMITTER_V2[network])


def encode_mint_recipient(address: HexAddress | str) -> bytes:
    """Convert an EVM address to bytes32 format for the ``mintRecipient`` parameter.

    CCTP uses bytes32 for recipient addresses to support non-EVM chains.
    For EVM chains, the address is left-padded with zeros to 32 bytes.
    """
    address = Web3.to_checksum_address(address)
    return bytes.fromhex(address[2:].lower().zfill(64))


def prepare_deposit_for_burn(
    web3: Web3,
    network: Network,
    amount: int,
    destination_domain: int,
    mint_recipient: HexAddress | str,
    burn_token: HexAddress | str,
    destination_caller: bytes | None = None,
    max_fee: int = 0,
    min_finality_threshold: int = FINALITY_THRESHOLD_STANDARD,
) -> ContractFunction:
    """Build a bound ``depositForBurn()`` call on TokenMessengerV2.

    USDC must be approved to TokenMessengerV2 before calling this.

    :param amount:
        Amount of USDC to transfer in raw token units (6 decimals).

    :param destination_domain:
        CCTP domain of the destination chain

    :param mint_recipient:
        Address to receive USDC on the destination chain.

    :param burn_token:
        USDC address on the source chain

    :param destination_caller:
        If set, restricts who can call ``receiveMessage()`` on
        the destination chain. ``None`` means anyone can relay (bytes32 zero).

    :param max_fee:
        Maximum fee for fast finality transfers. 0 for standard transfers.

    :param min_finality_threshold:
        Finality level: 2000 for standard (finalized), 1000 for fast (confirmed).
    """
    assert max_fee < amount, f"Max fee {max_fee} must be less than amount {amount}"

    if destination_caller is None:
        destination_caller = b"\x00" * 32

    token_messenger = get_token_messenger_v2(web3, network)

    logger.info(
        "Preparing CCTP depositForBurn: amount=%s, destination_domain=%s, recipient=%s, max_fee=%s",
        amount,
        destination_domain,
        mint_recipient,
        max_fee,
    )

    return token_messenger.functions.depositForBurn(
        amount,
        destination_domain,
        encode_mint_recipient(mint_recipient),
        Web3.to_checksum_address(burn_token),
        destination_caller,
        max_fee,
        min_finality_threshold,
    )


def prepare_approve_for_burn(
    web3: Web3,
    network: Network,
    burn_token: HexAddress | str,
    amount: int,
) -> ContractFunction:
    """Build a USDC ``approve()`` call to TokenMessengerV2.

    Must be called before :func:`prepare_deposit_for_burn`.
    """
    usdc = get_deployed_contract(web3, "ERC20.json", burn_token)
    return usdc.functions.approve(
        Web3.to_checksum_address(TOKEN_MESSENGER_V2[network]),
        amount,
    )
