"""Transfer orchestrator against a mock transfer protocol."""

import pytest

from xchain_transfer.amount import parse_amount
from xchain_transfer.orchestrator import Completed, Failed, InsufficientQuoteError, TransferOrchestrator, check_quote
from xchain_transfer.testing import MockFailure, MockTransferProtocol
from xchain_transfer.token import token_id
from xchain_transfer.transfer import AttestationTimeout, DeliveryOptions, TransferQuote, TransferState, create_transfer_request


@pytest.fixture()
def native(source):
    return token_id(source.chain, "native")


@pytest.mark.asyncio
async def test_standard_transfer(native, source, destination):
    """Automatic transfer with native gas runs quote, initiate, attest and complete."""
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(
        token=native,
        amount=parse_amount("0.01", 18),
        source=source,
        destination=destination,
        delivery=DeliveryOptions(automatic=True, native_gas=parse_amount("0.01", 18)),
    )

    assert isinstance(result, Completed)
    assert result.state == TransferState.completed
    assert protocol.calls == ["create", "quote", "initiate", "attest", "complete"]
    assert result.source_txids == list(protocol.source_txids)
    assert result.attestation_ids == list(protocol.attestation_ids)
    assert result.destination_txids == ["0xdestination"]

    # Complete was signed by the destination
    assert protocol.complete_signers == [destination.signer]

    request = protocol.requests[0]
    assert request.automatic
    assert request.native_gas == 10**16

    # Initiated against the quote that was checked
    quote = protocol.handles[0].quote
    assert quote.relay_fee == protocol.relay_fee
    assert quote.destination_native_gas == 10**16


@pytest.mark.asyncio
async def test_negative_quote_aborts_before_initiate(native, source, destination):
    protocol = MockTransferProtocol(relay_fee=10**17)
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(
        token=native,
        amount=10**16,
        source=source,
        destination=destination,
        delivery=DeliveryOptions(automatic=True),
    )

    assert isinstance(result, Failed)
    assert isinstance(result.error, InsufficientQuoteError)
    assert result.state == TransferState.failed
    assert result.reached == TransferState.created
    assert result.source_txids == []
    assert "initiate" not in protocol.calls


@pytest.mark.asyncio
async def test_native_gas_counts_against_quote(native, source, destination):
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(
        token=native,
        amount=10**16,
        source=source,
        destination=destination,
        delivery=DeliveryOptions(automatic=True, native_gas=2 * 10**16),
    )

    assert isinstance(result, Failed)
    assert isinstance(result.error, InsufficientQuoteError)
    assert protocol.calls == ["create", "quote"]


@pytest.mark.asyncio
async def test_manual_transfer_ignores_native_gas(native, source, destination):
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol)

    # Native gas larger than the amount would fail the quote if it was kept
    result = await orchestrator.transfer(
        token=native,
        amount=10**16,
        source=source,
        destination=destination,
        delivery=DeliveryOptions(automatic=False, native_gas=10**18),
    )

    assert isinstance(result, Completed)
    assert protocol.requests[0].native_gas is None


@pytest.mark.asyncio
async def test_recover(avalanche, destination):
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.recover(avalanche, "0xabc", destination)

    assert isinstance(result, Completed)
    assert protocol.calls == ["recover", "attest", "complete"]
    assert result.source_txids == ["0xabc"]
    assert result.destination_txids == ["0xdestination"]


@pytest.mark.asyncio
async def test_recover_failure(avalanche, destination):
    protocol = MockTransferProtocol(fail_phase="recover")
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.recover(avalanche, "0xabc", destination)

    assert isinstance(result, Failed)
    assert isinstance(result.error, MockFailure)
    assert result.reached == TransferState.created
    assert protocol.calls == ["recover"]


@pytest.mark.asyncio
async def test_attestation_timeout(native, source, destination):
    protocol = MockTransferProtocol(attestation_never_resolves=True)
    orchestrator = TransferOrchestrator(protocol, attestation_timeout=0.05)

    result = await orchestrator.transfer(native, 10**16, source, destination)

    assert isinstance(result, Failed)
    assert isinstance(result.error, AttestationTimeout)
    assert isinstance(result.error, TimeoutError)
    assert result.reached == TransferState.initiated
    # Source transaction is reported so the transfer can be recovered
    assert result.source_txids == list(protocol.source_txids)
    assert "complete" not in protocol.calls
    handle = protocol.handles[0]
    assert handle.state == TransferState.failed
    assert handle.failed_from == TransferState.initiated


@pytest.mark.asyncio
async def test_recover_attestation_timeout(avalanche, destination):
    protocol = MockTransferProtocol(attestation_never_resolves=True)
    orchestrator = TransferOrchestrator(protocol, attestation_timeout=0.05)

    result = await orchestrator.recover(avalanche, "0xabc", destination)

    assert isinstance(result, Failed)
    assert isinstance(result.error, AttestationTimeout)
    assert result.reached == TransferState.recovered
    assert protocol.calls == ["recover", "attest"]
    assert protocol.handles[0].state == TransferState.failed


@pytest.mark.asyncio
async def test_failed_attestation_skips_complete(native, source, destination):
    protocol = MockTransferProtocol(fail_phase="attest")
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(native, 10**16, source, destination)

    assert isinstance(result, Failed)
    assert isinstance(result.error, MockFailure)
    assert result.reached == TransferState.initiated
    assert protocol.calls == ["create", "quote", "initiate", "attest"]


@pytest.mark.asyncio
async def test_failed_complete(native, source, destination):
    protocol = MockTransferProtocol(fail_phase="complete")
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(native, 10**16, source, destination)

    assert isinstance(result, Failed)
    assert result.reached == TransferState.attested
    assert result.source_txids == list(protocol.source_txids)


@pytest.mark.asyncio
async def test_failed_initiate(native, source, destination):
    protocol = MockTransferProtocol(fail_phase="initiate")
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(native, 10**16, source, destination)

    assert isinstance(result, Failed)
    assert result.reached == TransferState.created
    assert result.source_txids == []


@pytest.mark.asyncio
async def test_relayer_completed_first(native, source, destination):
    protocol = MockTransferProtocol(already_completed=True)
    orchestrator = TransferOrchestrator(protocol)

    result = await orchestrator.transfer(native, 10**16, source, destination, delivery=DeliveryOptions(automatic=True))

    assert isinstance(result, Completed)
    assert result.state == TransferState.completed
    assert result.destination_txids == []


@pytest.mark.asyncio
async def test_automatic_without_awaiting_attestation(native, source, destination):
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol, await_attestation=False)

    result = await orchestrator.transfer(native, 10**16, source, destination, delivery=DeliveryOptions(automatic=True))

    assert isinstance(result, Completed)
    assert result.state == TransferState.initiated
    assert result.source_txids == list(protocol.source_txids)
    assert protocol.calls == ["create", "quote", "initiate"]


@pytest.mark.asyncio
async def test_manual_always_awaits_attestation(native, source, destination):
    protocol = MockTransferProtocol()
    orchestrator = TransferOrchestrator(protocol, await_attestation=False)

    result = await orchestrator.transfer(native, 10**16, source, destination, delivery=DeliveryOptions(automatic=False))

    assert isinstance(result, Completed)
    assert result.state == TransferState.completed
    assert protocol.calls == ["create", "quote", "initiate", "attest", "complete"]


def test_check_quote(native, source, destination):
    request = create_transfer_request(native, 100, source.address, destination.address)

    check_quote(request, TransferQuote(source_amount=100, destination_amount=0))

    with pytest.raises(InsufficientQuoteError):
        check_quote(request, TransferQuote(source_amount=100, destination_amount=-1))


def test_bad_timeout():
    with pytest.raises(AssertionError):
        TransferOrchestrator(MockTransferProtocol(), attestation_timeout=0)
