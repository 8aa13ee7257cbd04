"""Drive a cross-chain transfer through its phases.

The orchestrator sequences a :py:class:`~xchain_transfer.transfer.TransferProtocol`:

1. Initiate: quote, then submit on the source chain

2. Attest: wait for the signed attestation, bounded by a timeout

3. Complete: redeem on the destination chain

A transfer can alternatively be recovered from its source transaction id,
after which it is attested and completed the same way.

Phases are strictly sequential. Nothing is retried and nothing is compensated:
a failure after the initiate phase leaves a source chain transaction behind,
which can be resumed with :py:meth:`TransferOrchestrator.recover`.

Example:

.. code-block:: python

    orchestrator = TransferOrchestrator(environment.get_protocol("TokenBridge"))
    result = await orchestrator.transfer(
        token=token_id(source.chain, "native"),
        amount=parse_amount("0.01", 18),
        source=source,
        destination=destination,
    )
    if isinstance(result, Failed):
        raise result.error
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from xchain_transfer.chain import ChainEndpoint
from xchain_transfer.config import DEFAULT_ATTESTATION_TIMEOUT
from xchain_transfer.platform import SignerHandle
from xchain_transfer.token import TokenReference
from xchain_transfer.transfer import (
    AttestationTimeout,
    DeliveryOptions,
    TransferHandle,
    TransferProtocol,
    TransferQuote,
    TransferRequest,
    TransferState,
    create_transfer_request,
)

logger = logging.getLogger(__name__)


class InsufficientQuoteError(ValueError):
    """The transferred amount does not cover the fee and the requested native gas."""


@dataclass(slots=True)
class Completed:
    """The run finished its work."""

    #: ``Completed`` normally.
    #:
    #: ``Initiated`` when the run stopped after initiating an automatic transfer,
    #: without waiting for the attestation.
    state: TransferState

    source_txids: list[str] = field(default_factory=list)

    attestation_ids: list[str] = field(default_factory=list)

    #: Empty when a relayer redeemed the transfer first
    destination_txids: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Failed:
    """The run stopped at an error."""

    error: Exception

    #: Last state the transfer reached before the failure
    reached: TransferState

    #: Source transaction ids, if the failure happened after initiating.
    #:
    #: Use these to recover the transfer.
    source_txids: list[str] = field(default_factory=list)

    @property
    def state(self) -> TransferState:
        return TransferState.failed


#: Outcome of one orchestrator run
TransferResult = Union[Completed, Failed]


def check_quote(request: TransferRequest, quote: TransferQuote):
    """Refuse to submit a transfer the recipient would receive nothing from.

    :raise InsufficientQuoteError:
        If the projected destination amount is negative
    """
    if quote.destination_amount < 0:
        raise InsufficientQuoteError(f"The amount requested {request.amount} is too low to cover the fee {quote.relay_fee} and native gas {quote.destination_native_gas} requested")


class TransferOrchestrator:
    """Run one transfer at a time through a transfer protocol."""

    def __init__(
        self,
        protocol: TransferProtocol,
        attestation_timeout: float = DEFAULT_ATTESTATION_TIMEOUT,
        await_attestation: bool = True,
    ):
        """
        :param protocol:
            The bridge protocol that creates the transfers

        :param attestation_timeout:
            Seconds to wait for the signed attestation

        :param await_attestation:
            For automatic transfers, wait for the attestation and redeem ourselves.

            If ``False``, an automatic transfer run ends after initiating and the relayer
            completes it. Manual and recovered transfers always wait.
        """
        assert isinstance(protocol, TransferProtocol), f"Got {type(protocol)}"
        assert attestation_timeout > 0, f"Bad attestation timeout: {attestation_timeout}"
        self.protocol = protocol
        self.attestation_timeout = attestation_timeout
        self.await_attestation = await_attestation

    def __repr__(self):
        return f"<TransferOrchestrator {self.protocol.name} timeout:{self.attestation_timeout}s await_attestation:{self.await_attestation}>"

    async def transfer(
        self,
        token: TokenReference,
        amount: int,
        source: SignerHandle,
        destination: SignerHandle,
        delivery: DeliveryOptions | None = None,
        payload: bytes | None = None,
    ) -> TransferResult:
        """Initiate, attest and complete a new transfer.

        :param amount:
            Amount in the token's base units

        :return:
            :py:class:`Completed` or :py:class:`Failed`
        """
        handle: Optional[TransferHandle] = None
        try:
            request = create_transfer_request(
                token,
                amount,
                source.address,
                destination.address,
                delivery=delivery,
                payload=payload,
            )

            handle = await self.protocol.create(request)

            quote = await self.protocol.quote(request)
            logger.info("Quote: %s", quote)
            check_quote(request, quote)

            logger.info("Starting transfer of %d %s from %s to %s", amount, token.address, source.chain.name, destination.chain.name)
            source_txids = await handle.initiate_transfer(source.signer, quote)
            logger.info("%s transaction id: %s", source.chain.name, source_txids[0])
            logger.info("Message id: %s", source_txids[1] if len(source_txids) > 1 else source_txids[0])

            if request.automatic and not self.await_attestation:
                logger.info("Automatic transfer initiated, not waiting for the attestation")
                return Completed(state=handle.state, source_txids=source_txids)

            return await self._attest_and_complete(handle, destination)
        except Exception as e:
            return self._fail(handle, e)

    async def recover(
        self,
        chain: ChainEndpoint,
        txid: str,
        destination: SignerHandle,
    ) -> TransferResult:
        """Resume a transfer from its source chain transaction.

        :param chain:
            The chain where the transfer was initiated

        :param txid:
            Source chain transaction id
        """
        handle: Optional[TransferHandle] = None
        try:
            logger.info("Recovering transfer %s on %s", txid, chain.name)
            handle = await self.protocol.recover(chain, txid)
            assert handle.state == TransferState.recovered, f"Protocol returned a handle in state {handle.state}"
            return await self._attest_and_complete(handle, destination)
        except Exception as e:
            return self._fail(handle, e)

    async def _attest_and_complete(self, handle: TransferHandle, destination: SignerHandle) -> Completed:
        logger.info("Getting attestation, waiting up to %.0f seconds", self.attestation_timeout)
        try:
            attestation_ids = await asyncio.wait_for(
                handle.fetch_attestation(self.attestation_timeout),
                timeout=self.attestation_timeout,
            )
        except AttestationTimeout:
            raise
        except (asyncio.TimeoutError, TimeoutError) as e:
            raise AttestationTimeout(f"Attestation not available after {self.attestation_timeout} seconds for {handle}") from e
        logger.info("Got attestation: %s", attestation_ids)

        logger.info("Completing transfer on %s", destination.chain.name)
        destination_txids = await handle.complete_transfer(destination.signer)
        if destination_txids:
            logger.info("Completed transfer: %s", destination_txids)
        else:
            logger.info("Transfer was already completed by a relayer")

        return Completed(
            state=handle.state,
            source_txids=handle.source_txids,
            attestation_ids=attestation_ids,
            destination_txids=destination_txids,
        )

    def _fail(self, handle: TransferHandle | None, error: Exception) -> Failed:
        if handle is None:
            reached = TransferState.created
            source_txids = []
        else:
            reached = handle.failed_from if handle.state == TransferState.failed else handle.state
            source_txids = handle.source_txids

        logger.error("Transfer failed after reaching %s: %s", reached.value, error, exc_info=error)
        if source_txids:
            logger.error("Source transaction %s is on chain, recover the transfer with it", source_txids[0])

        return Failed(error=error, reached=reached, source_txids=source_txids)
