"""Transfer requests, quotes and live transfer handles.

A :py:class:`TransferProtocol` creates :py:class:`TransferHandle` objects that
move through the phases of a cross-chain transfer:

.. code-block:: text

    Created -> Initiated -> Attested -> Completed
                Recovered --^

Any phase that raises moves the handle to ``Failed``.
There is no cancel: once initiated, the source chain transaction cannot be revoked.
"""

import asyncio
import enum
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from xchain_transfer.chain import ChainAddress, ChainEndpoint
from xchain_transfer.platform import ChainSigner
from xchain_transfer.token import TokenReference

logger = logging.getLogger(__name__)


class TransferStateError(Exception):
    """A transfer phase was called out of order."""


class AttestationTimeout(TimeoutError):
    """The signed attestation was not available within the bound."""


class UnsupportedTransfer(ValueError):
    """The protocol cannot move this token or deliver this way."""


class TransferState(enum.Enum):
    """Where a transfer is in its lifecycle."""

    created = "Created"

    #: Source chain transaction is mined
    initiated = "Initiated"

    #: Reconstructed from a source chain transaction id
    recovered = "Recovered"

    #: Signed attestation is available
    attested = "Attested"

    #: Redeemed on the destination chain
    completed = "Completed"

    failed = "Failed"


@dataclass(slots=True, frozen=True)
class DeliveryOptions:
    """How the transfer is completed on the destination chain."""

    #: A relayer completes the transfer instead of the destination signer
    automatic: bool = False

    #: Native gas to drop to the recipient, in the transferred token's base units.
    #:
    #: Only meaningful when ``automatic`` is set.
    native_gas: Optional[int] = None


@dataclass(slots=True, frozen=True)
class TransferRequest:
    """Everything needed to start a transfer."""

    token: TokenReference

    #: Amount in token base units
    amount: int

    from_address: ChainAddress

    to_address: ChainAddress

    automatic: bool = False

    #: Arbitrary payload delivered with the tokens
    payload: Optional[bytes] = None

    #: Native gas drop amount in the token's base units, see :py:class:`DeliveryOptions`
    native_gas: Optional[int] = None

    def __post_init__(self):
        assert type(self.amount) == int, f"Amount must be raw int, got {type(self.amount)}: {self.amount}"
        assert self.amount > 0, f"Amount must be positive, got {self.amount}"
        assert self.token.chain == self.from_address.chain, f"Token {self.token} is not on the source chain {self.from_address.chain}"
        if self.native_gas is not None:
            assert type(self.native_gas) == int, f"Native gas must be raw int, got {type(self.native_gas)}"
            assert self.native_gas >= 0, f"Negative native gas: {self.native_gas}"

    @property
    def from_chain(self) -> ChainEndpoint:
        return self.from_address.chain

    @property
    def to_chain(self) -> ChainEndpoint:
        return self.to_address.chain


def create_transfer_request(
    token: TokenReference,
    amount: int,
    from_address: ChainAddress,
    to_address: ChainAddress,
    delivery: DeliveryOptions | None = None,
    payload: bytes | None = None,
) -> TransferRequest:
    """Build a transfer request, applying delivery rules.

    Native gas is only delivered by relayers, so it is dropped for manual transfers.
    """
    if delivery is None:
        delivery = DeliveryOptions()

    native_gas = delivery.native_gas
    if not delivery.automatic and native_gas is not None:
        logger.warning("Native gas %d ignored for a manual transfer", native_gas)
        native_gas = None

    return TransferRequest(
        token=token,
        amount=amount,
        from_address=from_address,
        to_address=to_address,
        automatic=delivery.automatic,
        payload=payload,
        native_gas=native_gas,
    )


@dataclass(slots=True)
class TransferQuote:
    """Projected outcome of a transfer, before it is submitted.

    All amounts are in the transferred token's base units.
    """

    source_amount: int

    #: What the recipient gets after fees and native gas.
    #:
    #: Negative when the amount does not cover the fees.
    destination_amount: int

    relay_fee: int = 0

    destination_native_gas: int = 0

    #: Estimated seconds until the transfer can be completed
    eta_seconds: Optional[float] = None

    warnings: list[str] = field(default_factory=list)


class TransferHandle(ABC):
    """A live transfer.

    Subclasses implement the protocol specific phases
    :py:meth:`_initiate`, :py:meth:`_fetch_attestation` and :py:meth:`_complete`.
    This class enforces the phase order and records the identifiers each phase produces.
    """

    def __init__(self, request: TransferRequest | None, state: TransferState = TransferState.created):
        #: ``None`` when the transfer was recovered and the original request is not known
        self.request = request
        self.state = state
        #: State the handle was in when a phase raised
        self.failed_from: Optional[TransferState] = None
        #: Quote the transfer was initiated against, if the caller checked one
        self.quote: Optional[TransferQuote] = None
        self.source_txids: list[str] = []
        self.attestation_ids: list[str] = []
        self.destination_txids: list[str] = []

    def __repr__(self):
        return f"<{self.__class__.__name__} {self.state.value} source:{self.source_txids}>"

    @property
    def automatic(self) -> bool:
        return self.request.automatic if self.request else False

    def _check_state(self, phase: str, *allowed: TransferState):
        if self.state not in allowed:
            raise TransferStateError(f"Cannot {phase} {self}, expected state {[s.value for s in allowed]}")

    async def _run_phase(self, coro):
        # Cancelled when a caller bounds the phase with asyncio.wait_for
        try:
            return await coro
        except (Exception, asyncio.CancelledError):
            self.failed_from = self.state
            self.state = TransferState.failed
            raise

    async def initiate_transfer(self, signer: ChainSigner, quote: TransferQuote | None = None) -> list[str]:
        """Submit the transfer on the source chain.

        :param quote:
            The quote the caller accepted. Fees paid on-chain are bounded by it.

        :return:
            Source chain transaction id, optionally followed by the cross-chain message id
        """
        self._check_state("initiate", TransferState.created)
        self.quote = quote
        txids = await self._run_phase(self._initiate(signer))
        self.source_txids = list(txids)
        self.state = TransferState.initiated
        return self.source_txids

    async def fetch_attestation(self, timeout: float) -> list[str]:
        """Wait until the signed attestation is available.

        :param timeout:
            Seconds to wait

        :raise AttestationTimeout:
            If the attestation is not ready in time
        """
        self._check_state("attest", TransferState.initiated, TransferState.recovered)
        ids = await self._run_phase(self._fetch_attestation(timeout))
        self.attestation_ids = list(ids)
        self.state = TransferState.attested
        return self.attestation_ids

    async def complete_transfer(self, signer: ChainSigner) -> list[str]:
        """Redeem the attested transfer on the destination chain.

        :return:
            Destination chain transaction ids, empty if a relayer already redeemed it
        """
        self._check_state("complete", TransferState.attested)
        txids = await self._run_phase(self._complete(signer))
        self.destination_txids = list(txids)
        self.state = TransferState.completed
        return self.destination_txids

    @abstractmethod
    async def _initiate(self, signer: ChainSigner) -> list[str]:
        pass

    @abstractmethod
    async def _fetch_attestation(self, timeout: float) -> list[str]:
        pass

    @abstractmethod
    async def _complete(self, signer: ChainSigner) -> list[str]:
        pass


class TransferProtocol(ABC):
    """Creates, quotes and recovers transfers for one bridge protocol."""

    #: Name the protocol is registered under
    name: str

    @abstractmethod
    async def create(self, request: TransferRequest) -> TransferHandle:
        """Create a transfer handle. No on-chain side effects."""

    @abstractmethod
    async def quote(self, request: TransferRequest) -> TransferQuote:
        """Project the destination amount and fees."""

    @abstractmethod
    async def recover(self, chain: ChainEndpoint, txid: str) -> TransferHandle:
        """Reconstruct a transfer from its source chain transaction.

        The returned handle is in ``Recovered`` state.
        """
