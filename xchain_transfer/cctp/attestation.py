"""Circle CCTP V2 attestation service client.

Poll Circle's Iris API for burn attestations needed to complete
cross-chain USDC transfers.

After calling ``depositForBurn()`` on the source chain, you must wait for
Circle's attestation service to sign the burn event.

Example::

    from xchain_transfer.cctp.attestation import fetch_attestation

    attestation = await fetch_attestation(
        source_domain=0,  # Ethereum
        transaction_hash="0x...",
        timeout=300.0,
    )

    # Use attestation.message and attestation.attestation
    # with prepare_receive_message() on the destination chain
"""

import asyncio
import logging
import math
import time
from dataclasses import dataclass

import aiohttp

from xchain_transfer.cctp.constants import HTTP_NOT_FOUND, IRIS_API_URLS
from xchain_transfer.chain import Network
from xchain_transfer.transfer import AttestationTimeout

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class CCTPAttestation:
    """Attestation data for a CCTP burn event.

    Contains the signed message and attestation needed to call
    ``receiveMessage()`` on the destination chain's MessageTransmitterV2.
    """

    #: The CCTP message bytes to relay to the destination chain
    message: bytes

    #: The signed attestation bytes from Circle's Iris service
    attestation: bytes

    #: Status from Iris API (e.g. "complete")
    status: str


def _parse_attestation(data: dict) -> CCTPAttestation | None:
    """Pick a completed attestation from an Iris ``/v2/messages`` response."""
    messages = data.get("messages") or []
    if not messages:
        return None

    msg = messages[0]
    status = msg.get("status", "")
    attestation_hex = msg.get("attestation")

    if status == "complete" and attestation_hex and attestation_hex != "PENDING":
        message_hex = msg.get("message", "")
        return CCTPAttestation(
            message=bytes.fromhex(message_hex.removeprefix("0x")),
            attestation=bytes.fromhex(attestation_hex.removeprefix("0x")),
            status=status,
        )

    logger.info("Attestation status: %s (waiting for 'complete')", status)
    return None


async def fetch_attestation(
    source_domain: int,
    transaction_hash: str,
    timeout: float = 300.0,
    poll_interval: float = 5.0,
    api_base_url: str = IRIS_API_URLS[Network.mainnet],
    session: aiohttp.ClientSession | None = None,
    request_timeout: float = 30.0,
) -> CCTPAttestation:
    """Poll the Iris API until attestation is ready or timeout.

    Circle's Iris service observes burn events on the source chain and
    produces a cryptographic attestation after block finality is reached.

    :param source_domain:
        CCTP domain ID of the source chain (e.g. 0 for Ethereum).

    :param transaction_hash:
        Transaction hash of the ``depositForBurn()`` call on the source chain.

    :param timeout:
        Maximum seconds to wait for attestation.

    :param poll_interval:
        Seconds between polling attempts.

    :param api_base_url:
        Iris API base URL. Defaults to mainnet.

    :param session:
        Optional aiohttp session for connection pooling

    :return:
        :class:`CCTPAttestation` with message and attestation bytes.

    :raises AttestationTimeout:
        If attestation is not ready within the timeout period.

    :raises aiohttp.ClientResponseError:
        If the Iris API returns a non-retryable error response.
    """
    # Iris API requires 0x-prefixed transaction hash
    if not transaction_hash.startswith("0x"):
        transaction_hash = f"0x{transaction_hash}"

    url = f"{api_base_url}/v2/messages/{source_domain}"
    params = {"transactionHash": transaction_hash}

    close_session = False
    if session is None:
        session = aiohttp.ClientSession()
        close_session = True

    start_time = time.monotonic()
    attempt = 0

    try:
        while True:
            elapsed = time.monotonic() - start_time
            if elapsed >= timeout:
                raise AttestationTimeout(f"CCTP attestation not ready after {timeout}s for tx {transaction_hash} on domain {source_domain}")

            attempt += 1
            logger.info(
                "Polling CCTP attestation: domain=%s, tx=%s, attempt=%d, elapsed=%.1fs",
                source_domain,
                transaction_hash,
                attempt,
                elapsed,
            )

            async with session.get(url, params=params, timeout=aiohttp.ClientTimeout(total=request_timeout)) as response:
                # Iris API returns 404 when the transaction is not yet indexed;
                # treat it as "pending" and retry.
                if response.status == HTTP_NOT_FOUND:
                    logger.info("Attestation not yet indexed (404), retrying...")
                    data = None
                else:
                    response.raise_for_status()
                    data = await response.json()

            if data is not None:
                attestation = _parse_attestation(data)
                if attestation is not None:
                    return attestation

            await asyncio.sleep(min(poll_interval, max(timeout - (time.monotonic() - start_time), 0)))
    finally:
        if close_session:
            await session.close()


async def fetch_fast_transfer_fee_bps(
    source_domain: int,
    destination_domain: int,
    finality_threshold: int,
    api_base_url: str = IRIS_API_URLS[Network.mainnet],
    session: aiohttp.ClientSession | None = None,
) -> float:
    """Read the minimum fee Circle charges for a transfer route, in basis points.

    Uses the Iris ``/v2/burn/USDC/fees/{source}/{destination}`` endpoint,
    which lists one entry per finality threshold.
    """
    url = f"{api_base_url}/v2/burn/USDC/fees/{source_domain}/{destination_domain}"

    close_session = False
    if session is None:
        session = aiohttp.ClientSession()
        close_session = True

    try:
        async with session.get(url, timeout=aiohttp.ClientTimeout(total=30)) as response:
            response.raise_for_status()
            data = await response.json()
    finally:
        if close_session:
            await session.close()

    for entry in data:
        if entry.get("finalityThreshold") == finality_threshold:
            return float(entry.get("minimumFee", 0))

    raise ValueError(f"No fee for finality threshold {finality_threshold} on route {source_domain} -> {destination_domain}: {data}")


def calculate_fee(amount: int, fee_bps: float) -> int:
    """Fee in raw USDC units, rounded up."""
    return math.ceil(amount * fee_bps / 10_000)
