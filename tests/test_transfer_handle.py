"""Transfer requests and handle state machine."""

import asyncio
import logging

import pytest

from xchain_transfer.chain import ChainAddress
from xchain_transfer.testing import MockFailure, MockTransferProtocol
from xchain_transfer.token import token_id
from xchain_transfer.transfer import DeliveryOptions, TransferRequest, TransferState, TransferStateError, create_transfer_request


@pytest.fixture()
def request_(source, destination):
    return create_transfer_request(token_id(source.chain, "native"), 10**16, source.address, destination.address)


def test_manual_transfer_drops_native_gas(source, destination, caplog):
    token = token_id(source.chain, "native")
    with caplog.at_level(logging.WARNING):
        request = create_transfer_request(token, 10**16, source.address, destination.address, delivery=DeliveryOptions(automatic=False, native_gas=10**16))
    assert request.native_gas is None
    assert not request.automatic
    assert "Native gas" in caplog.text


def test_automatic_transfer_keeps_native_gas(source, destination):
    token = token_id(source.chain, "native")
    request = create_transfer_request(token, 10**16, source.address, destination.address, delivery=DeliveryOptions(automatic=True, native_gas=10**15))
    assert request.native_gas == 10**15
    assert request.automatic
    assert request.from_chain == source.chain
    assert request.to_chain == destination.chain


def test_request_checks(source, destination):
    token = token_id(source.chain, "native")

    with pytest.raises(AssertionError):
        TransferRequest(token, 0, source.address, destination.address)

    with pytest.raises(AssertionError):
        TransferRequest(token, 0.5, source.address, destination.address)

    # Token must live on the source chain
    with pytest.raises(AssertionError):
        TransferRequest(token_id(destination.chain, "native"), 1, source.address, destination.address)

    with pytest.raises(AssertionError):
        TransferRequest(token, 1, source.address, destination.address, native_gas=-1)


@pytest.mark.asyncio
async def test_phases_in_order(request_, source, destination):
    protocol = MockTransferProtocol()
    handle = await protocol.create(request_)
    assert handle.state == TransferState.created

    await handle.initiate_transfer(source.signer)
    assert handle.state == TransferState.initiated
    assert handle.source_txids == list(protocol.source_txids)

    await handle.fetch_attestation(1)
    assert handle.state == TransferState.attested

    await handle.complete_transfer(destination.signer)
    assert handle.state == TransferState.completed
    assert handle.destination_txids == ["0xdestination"]


@pytest.mark.asyncio
async def test_phases_out_of_order(request_, source, destination):
    protocol = MockTransferProtocol()
    handle = await protocol.create(request_)

    with pytest.raises(TransferStateError):
        await handle.fetch_attestation(1)

    with pytest.raises(TransferStateError):
        await handle.complete_transfer(destination.signer)

    await handle.initiate_transfer(source.signer)

    with pytest.raises(TransferStateError):
        await handle.initiate_transfer(source.signer)

    with pytest.raises(TransferStateError):
        await handle.complete_transfer(destination.signer)

    # Rejected calls did not reach the protocol
    assert protocol.calls == ["create", "initiate"]
    assert handle.state == TransferState.initiated


@pytest.mark.asyncio
async def test_recovered_handle_attests(avalanche, destination):
    protocol = MockTransferProtocol()
    handle = await protocol.recover(avalanche, "0xabc")
    assert handle.state == TransferState.recovered
    assert not handle.automatic

    with pytest.raises(TransferStateError):
        await handle.initiate_transfer(destination.signer)

    await handle.fetch_attestation(1)
    assert handle.state == TransferState.attested


@pytest.mark.asyncio
async def test_failing_phase(request_, source):
    protocol = MockTransferProtocol(fail_phase="initiate")
    handle = await protocol.create(request_)

    with pytest.raises(MockFailure):
        await handle.initiate_transfer(source.signer)

    assert handle.state == TransferState.failed
    assert handle.failed_from == TransferState.created

    # Failed is terminal
    with pytest.raises(TransferStateError):
        await handle.initiate_transfer(source.signer)


def test_chain_address(avalanche):
    address = ChainAddress(avalanche, "0x0000000000000000000000000000000000000001")
    assert address.chain == avalanche


@pytest.mark.asyncio
async def test_bounded_phase_timeout_fails_handle(request_, source):
    """A phase cancelled by asyncio.wait_for leaves the handle failed."""
    protocol = MockTransferProtocol(attestation_never_resolves=True)
    handle = await protocol.create(request_)
    await handle.initiate_transfer(source.signer)

    with pytest.raises((asyncio.TimeoutError, TimeoutError)):
        await asyncio.wait_for(handle.fetch_attestation(1), timeout=0.05)

    assert handle.state == TransferState.failed
    assert handle.failed_from == TransferState.initiated
