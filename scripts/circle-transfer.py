"""Circle CCTP USDC transfer script.

Burns USDC on Avalanche Fuji and mints it on Sepolia.
The transfer is a fast transfer: the burn asks for fast finality and pays
Circle a small fee. The destination wallet then mints on Sepolia itself.
With ``AWAIT_ATTESTATION=false`` the script exits right after the burn and
nothing is minted until the burn is recovered and completed.

Example:

.. code-block:: shell

    export EVM_PRIVATE_KEY=0x...
    python scripts/circle-transfer.py

Settings are read from a ``.env`` file if one exists.
"""

import asyncio
import logging
import os
import sys

from dotenv import load_dotenv

from xchain_transfer.amount import format_amount, parse_amount
from xchain_transfer.cctp.constants import USDC_DECIMALS, USDC_TOKEN
from xchain_transfer.config import load_config
from xchain_transfer.environment import create_default_environment
from xchain_transfer.orchestrator import Completed, TransferOrchestrator
from xchain_transfer.transfer import DeliveryOptions
from xchain_transfer.utils import setup_console_logging

logger = logging.getLogger(__name__)

load_dotenv()

AMOUNT = os.environ.get("AMOUNT", "0.01")

AWAIT_ATTESTATION = os.environ.get("AWAIT_ATTESTATION", "true").lower() == "true"


async def main() -> int:
    setup_console_logging(default_log_level="info")

    config = load_config()
    environment = create_default_environment(config)

    send_chain = environment.get_chain("Avalanche")
    receive_chain = environment.get_chain("Sepolia")

    source = await environment.get_signer(send_chain)
    destination = await environment.get_signer(receive_chain)

    token = environment.token_id(send_chain, USDC_TOKEN[config.network][send_chain.name])
    amount = parse_amount(AMOUNT, USDC_DECIMALS)
    logger.info("Sending %s USDC from %s to %s", format_amount(amount, USDC_DECIMALS), source, destination)

    orchestrator = TransferOrchestrator(
        environment.get_protocol("CCTP"),
        attestation_timeout=config.attestation_timeout,
        await_attestation=AWAIT_ATTESTATION,
    )
    result = await orchestrator.transfer(
        token=token,
        amount=amount,
        source=source,
        destination=destination,
        delivery=DeliveryOptions(automatic=True),
    )

    if isinstance(result, Completed):
        logger.info("Transfer finished in state %s: %s", result.state.value, result)
        return 0

    logger.error("Transfer failed: %s", result.error)
    return 1


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
