"""Fetch signed VAAs from Wormholescan.

Guardians sign a message once the source chain transaction reaches
the finality its consistency level asks for.
Until then Wormholescan answers 404.
"""

import asyncio
import base64
import logging
import time

import aiohttp

from xchain_transfer.chain import Network
from xchain_transfer.tokenbridge.constants import WORMHOLESCAN_API_URLS
from xchain_transfer.transfer import AttestationTimeout

logger = logging.getLogger(__name__)


async def fetch_signed_vaa(
    emitter_chain: int,
    emitter_address: bytes,
    sequence: int,
    timeout: float,
    poll_interval: float = 5.0,
    api_base_url: str = WORMHOLESCAN_API_URLS[Network.mainnet],
    session: aiohttp.ClientSession | None = None,
) -> bytes:
    """Poll Wormholescan until the VAA of a message is signed.

    :param emitter_address:
        bytes32 emitter, for token transfers the source chain Token Bridge

    :param timeout:
        Maximum seconds to wait

    :return:
        Signed VAA bytes

    :raise AttestationTimeout:
        If the VAA is not available in time
    """
    url = f"{api_base_url}/api/v1/vaas/{emitter_chain}/{emitter_address.hex()}/{sequence}"

    close_session = False
    if session is None:
        session = aiohttp.ClientSession()
        close_session = True

    started = time.monotonic()
    try:
        while True:
            elapsed = time.monotonic() - started
            if elapsed >= timeout:
                raise AttestationTimeout(f"VAA {emitter_chain}/{emitter_address.hex()}/{sequence} not signed after {timeout}s")

            logger.info("Polling VAA %s, elapsed %.1fs", url, elapsed)
            async with session.get(url, timeout=aiohttp.ClientTimeout(total=30)) as response:
                if response.status == 404:
                    data = None
                else:
                    response.raise_for_status()
                    data = await response.json()

            vaa = (data or {}).get("data", {}).get("vaa")
            if vaa:
                return base64.b64decode(vaa)

            await asyncio.sleep(min(poll_interval, max(timeout - (time.monotonic() - started), 0)))
    finally:
        if close_session:
            await session.close()
