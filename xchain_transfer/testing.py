"""Mock collaborators for testing the orchestrator without chains.

- :py:class:`MockPlatform` hands out signers that cannot sign anything

- :py:class:`MockTransferProtocol` records every call in :py:attr:`MockTransferProtocol.calls`
  so tests can assert the phase order

Example:

.. code-block:: python

    protocol = MockTransferProtocol(attestation_never_resolves=True)
    orchestrator = TransferOrchestrator(protocol, attestation_timeout=0.1)
    result = await orchestrator.transfer(token, 1000, source, destination)
    assert "complete" not in protocol.calls
"""

import asyncio
from typing import Any, Optional

import aiohttp

from xchain_transfer.chain import PLATFORM_EVM, ChainAddress, ChainEndpoint
from xchain_transfer.config import TransferConfig
from xchain_transfer.platform import ChainPlatformAdapter, ChainSigner, SignerHandle
from xchain_transfer.transfer import TransferHandle, TransferProtocol, TransferQuote, TransferRequest, TransferState

#: Address every mock signer uses unless told otherwise
MOCK_ADDRESS = "0x0000000000000000000000000000000000000001"

#: Well known development chain account 0, never use it for anything real
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"

#: Address of :py:data:`TEST_PRIVATE_KEY`
TEST_ADDRESS = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"


class MockFailure(Exception):
    """Raised by a mock phase told to fail."""


class MockSigner(ChainSigner):
    def __init__(self, chain: ChainEndpoint, address: str = MOCK_ADDRESS):
        self._chain = chain
        self._address = address

    def __repr__(self):
        return f"<MockSigner {self._address} on {self._chain.name}>"

    @property
    def chain(self) -> ChainEndpoint:
        return self._chain

    @property
    def address(self) -> str:
        return self._address


class MockPlatform(ChainPlatformAdapter):
    """Platform adapter with fixed token decimals."""

    def __init__(self, platform: str = PLATFORM_EVM, decimals: dict[str, int] | None = None, address: str = MOCK_ADDRESS):
        self.platform = platform
        self.decimals = decimals or {}
        self.address = address

    async def get_signer(self, chain: ChainEndpoint, config: TransferConfig) -> SignerHandle:
        signer = MockSigner(chain, self.address)
        return SignerHandle(chain=chain, address=ChainAddress(chain, self.address), signer=signer)

    async def get_decimals(self, chain: ChainEndpoint, config: TransferConfig, token_address: str) -> int:
        return self.decimals[token_address]


def create_mock_signer(chain: ChainEndpoint, address: str = MOCK_ADDRESS) -> SignerHandle:
    return SignerHandle(chain=chain, address=ChainAddress(chain, address), signer=MockSigner(chain, address))


class MockTransferHandle(TransferHandle):
    def __init__(self, protocol: "MockTransferProtocol", request: TransferRequest | None, state: TransferState = TransferState.created):
        super().__init__(request, state)
        self.protocol = protocol

    def _record(self, phase: str):
        self.protocol.calls.append(phase)
        if self.protocol.fail_phase == phase:
            raise MockFailure(f"{phase} failed")

    async def _initiate(self, signer: ChainSigner) -> list[str]:
        self._record("initiate")
        return list(self.protocol.source_txids)

    async def _fetch_attestation(self, timeout: float) -> list[str]:
        self._record("attest")
        if self.protocol.attestation_never_resolves:
            # Nobody sets this event
            await asyncio.Event().wait()
        return list(self.protocol.attestation_ids)

    async def _complete(self, signer: ChainSigner) -> list[str]:
        self._record("complete")
        self.protocol.complete_signers.append(signer)
        if self.protocol.already_completed:
            return []
        return list(self.protocol.destination_txids)


class MockTransferProtocol(TransferProtocol):
    """Transfer protocol with scripted results."""

    name = "Mock"

    def __init__(
        self,
        destination_amount: Optional[int] = None,
        relay_fee: int = 0,
        source_txids: tuple[str, ...] = ("0xsource", "10002/0000000000000000000000000000000000000000000000000000000000000001/1"),
        attestation_ids: tuple[str, ...] = ("10002/0000000000000000000000000000000000000000000000000000000000000001/1",),
        destination_txids: tuple[str, ...] = ("0xdestination",),
        attestation_never_resolves: bool = False,
        already_completed: bool = False,
        fail_phase: Optional[str] = None,
    ):
        """
        :param destination_amount:
            Quoted destination amount. If not given, the amount minus the relay fee and native gas.

        :param already_completed:
            Act as if a relayer redeemed the transfer first

        :param fail_phase:
            Raise :py:class:`MockFailure` in this phase, one of the names recorded in :py:attr:`calls`
        """
        self.destination_amount = destination_amount
        self.relay_fee = relay_fee
        self.source_txids = source_txids
        self.attestation_ids = attestation_ids
        self.destination_txids = destination_txids
        self.attestation_never_resolves = attestation_never_resolves
        self.already_completed = already_completed
        self.fail_phase = fail_phase

        #: Phase names in the order they were called
        self.calls: list[str] = []
        self.requests: list[TransferRequest] = []
        #: Every handle created or recovered
        self.handles: list[MockTransferHandle] = []
        self.complete_signers: list[ChainSigner] = []

    async def create(self, request: TransferRequest) -> MockTransferHandle:
        self.calls.append("create")
        self.requests.append(request)
        handle = MockTransferHandle(self, request)
        self.handles.append(handle)
        return handle

    async def quote(self, request: TransferRequest) -> TransferQuote:
        self.calls.append("quote")
        native_gas = request.native_gas or 0
        if self.destination_amount is None:
            destination_amount = request.amount - self.relay_fee - native_gas
        else:
            destination_amount = self.destination_amount
        return TransferQuote(
            source_amount=request.amount,
            destination_amount=destination_amount,
            relay_fee=self.relay_fee,
            destination_native_gas=native_gas,
        )

    async def recover(self, chain: ChainEndpoint, txid: str) -> MockTransferHandle:
        self.calls.append("recover")
        if self.fail_phase == "recover":
            raise MockFailure("recover failed")
        handle = MockTransferHandle(self, None, state=TransferState.recovered)
        handle.source_txids = [txid]
        self.handles.append(handle)
        return handle


class FakeHTTPResponse:
    """Canned response for :py:class:`FakeHTTPSession`."""

    def __init__(self, status: int = 200, data: Any = None):
        self.status = status
        self.data = data

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientResponseError(None, (), status=self.status, message=f"HTTP {self.status}")

    async def json(self):
        return self.data


class FakeHTTPSession:
    """Stand-in for :py:class:`aiohttp.ClientSession` returning canned responses in order.

    The last response repeats once the list runs out.
    """

    def __init__(self, responses: list[FakeHTTPResponse]):
        assert responses, "Give at least one response"
        self.responses = list(responses)
        #: ``(url, params)`` of each request
        self.requests: list[tuple[str, Optional[dict]]] = []
        self.closed = False

    def get(self, url: str, params: dict | None = None, timeout=None) -> FakeHTTPResponse:
        self.requests.append((url, params))
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    async def close(self):
        self.closed = True
