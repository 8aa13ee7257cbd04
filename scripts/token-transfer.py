"""Wormhole Token Bridge transfer script.

- Moves native AVAX or USDC from Avalanche Fuji to Sepolia

- Waits for the guardians to sign the VAA and redeems it on Sepolia

- With ``AUTOMATIC=true`` the Token Bridge Relayer delivers the transfer and swaps
  ``NATIVE_GAS`` of the token to Sepolia ETH for the recipient. The redeem step then
  finds the transfer already completed, unless the relayer is slower than us.
  ``AWAIT_ATTESTATION=false`` exits right after the Avalanche transaction.

- Set ``RECOVER_TXID`` to resume a transfer from its Avalanche transaction instead

Example:

.. code-block:: shell

    export EVM_PRIVATE_KEY=0x...
    export JSON_RPC_AVALANCHE=https://...
    export JSON_RPC_SEPOLIA=https://...
    python scripts/token-transfer.py

Settings are read from a ``.env`` file if one exists.
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from xchain_transfer.amount import parse_amount
from xchain_transfer.config import load_config
from xchain_transfer.environment import create_default_environment
from xchain_transfer.orchestrator import Completed, TransferOrchestrator
from xchain_transfer.transfer import DeliveryOptions
from xchain_transfer.utils import setup_console_logging

logger = logging.getLogger(__name__)

load_dotenv()

# USDC on Avalanche Fuji, use "native" for AVAX
TOKEN_ADDRESS = os.environ.get("TOKEN_ADDRESS", "0x5425890298aed601595a70ab815c96711a31bc65")

AMOUNT = os.environ.get("AMOUNT", "0.01")

RECOVER_TXID = os.environ.get("RECOVER_TXID")

AUTOMATIC = os.environ.get("AUTOMATIC", "false").lower() == "true"

# In the transferred token, swapped to native gas by the relayer
NATIVE_GAS = os.environ.get("NATIVE_GAS", "0")

AWAIT_ATTESTATION = os.environ.get("AWAIT_ATTESTATION", "true").lower() == "true"


async def main() -> int:
    setup_console_logging(default_log_level="info")

    config = load_config()
    environment = create_default_environment(config)

    send_chain = environment.get_chain("Avalanche")
    receive_chain = environment.get_chain("Sepolia")

    source = await environment.get_signer(send_chain)
    destination = await environment.get_signer(receive_chain)

    orchestrator = TransferOrchestrator(
        environment.get_protocol("TokenBridge"),
        attestation_timeout=config.attestation_timeout,
        await_attestation=AWAIT_ATTESTATION,
    )

    if RECOVER_TXID:
        result = await orchestrator.recover(send_chain, RECOVER_TXID, destination)
    else:
        token = environment.token_id(send_chain, TOKEN_ADDRESS)
        decimals = await environment.get_decimals(token)
        result = await orchestrator.transfer(
            token=token,
            amount=parse_amount(AMOUNT, decimals),
            source=source,
            destination=destination,
            delivery=DeliveryOptions(
                automatic=AUTOMATIC,
                native_gas=parse_amount(NATIVE_GAS, decimals) if AUTOMATIC else None,
            ),
        )

    if isinstance(result, Completed):
        logger.info("Transfer finished in state %s: %s", result.state.value, result)
        return 0

    logger.error("Transfer failed: %s", result.error)
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
