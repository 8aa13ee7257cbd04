"""CCTP protocol without chains.

Iris is a fake HTTP session, contract calls are patched.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from hexbytes import HexBytes
from web3 import Web3

from xchain_transfer.cctp.constants import FINALITY_THRESHOLD_FAST, FINALITY_THRESHOLD_STANDARD, USDC_TOKEN
from xchain_transfer.cctp.protocol import FAST_TRANSFER_ETA, STANDARD_TRANSFER_ETA, CCTPProtocol
from xchain_transfer.cctp.testing import craft_cctp_message
from xchain_transfer.chain import ChainAddress, Network, get_chain_config
from xchain_transfer.environment import ChainEnvironment
from xchain_transfer.evm.hotwallet import HotWallet
from xchain_transfer.evm.platform import EVMPlatform, EVMSigner
from xchain_transfer.orchestrator import Completed, TransferOrchestrator
from xchain_transfer.platform import SignerHandle
from xchain_transfer.testing import TEST_ADDRESS, TEST_PRIVATE_KEY, FakeHTTPResponse, FakeHTTPSession
from xchain_transfer.token import token_id
from xchain_transfer.transfer import DeliveryOptions, TransferQuote, TransferState, UnsupportedTransfer, create_transfer_request

TX_HASH = "0x" + "ab" * 32


@pytest.fixture()
def usdc_request(source, destination, fuji_usdc):
    return create_transfer_request(token_id(source.chain, fuji_usdc), 10_000_000, source.address, destination.address)


@pytest.fixture()
def automatic_request(source, destination, fuji_usdc):
    return create_transfer_request(token_id(source.chain, fuji_usdc), 10_000_000, source.address, destination.address, delivery=DeliveryOptions(automatic=True))


@pytest.fixture()
def sepolia_signer(sepolia) -> EVMSigner:
    return EVMSigner(sepolia, MagicMock(), HotWallet.from_private_key(TEST_PRIVATE_KEY))


def make_iris_response(message: bytes) -> FakeHTTPResponse:
    return FakeHTTPResponse(200, {"messages": [{"status": "complete", "attestation": "0x" + "11" * 65, "message": "0x" + message.hex()}]})


@pytest.fixture()
def burn_message(fuji_usdc) -> bytes:
    return craft_cctp_message(source_domain=1, destination_domain=0, nonce=5, mint_recipient=TEST_ADDRESS, amount=10_000_000, burn_token=fuji_usdc)


@pytest.mark.asyncio
async def test_unsupported(mock_environment, source, destination, fuji_usdc):
    protocol = CCTPProtocol(mock_environment)

    # Not USDC
    request = create_transfer_request(token_id(source.chain, "native"), 10**18, source.address, destination.address)
    with pytest.raises(UnsupportedTransfer):
        await protocol.create(request)

    request = create_transfer_request(token_id(source.chain, fuji_usdc), 1_000_000, source.address, destination.address, payload=b"hello")
    with pytest.raises(UnsupportedTransfer):
        await protocol.create(request)

    request = create_transfer_request(token_id(source.chain, fuji_usdc), 1_000_000, source.address, destination.address, delivery=DeliveryOptions(automatic=True, native_gas=1000))
    with pytest.raises(UnsupportedTransfer):
        await protocol.quote(request)

    solana = get_chain_config(Network.testnet, "Solana")
    request = create_transfer_request(token_id(source.chain, fuji_usdc), 1_000_000, source.address, ChainAddress(solana, "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"))
    with pytest.raises(UnsupportedTransfer):
        await protocol.create(request)


@pytest.mark.asyncio
async def test_quote_manual(mock_environment, usdc_request):
    protocol = CCTPProtocol(mock_environment)
    quote = await protocol.quote(usdc_request)
    assert quote.destination_amount == 10_000_000
    assert quote.relay_fee == 0
    assert quote.eta_seconds == STANDARD_TRANSFER_ETA


@pytest.mark.asyncio
async def test_quote_automatic_configured_fee(mock_environment, automatic_request):
    protocol = CCTPProtocol(mock_environment, fast_transfer_fee_bps=2)
    quote = await protocol.quote(automatic_request)
    assert quote.relay_fee == 2000
    assert quote.destination_amount == 10_000_000 - 2000
    assert quote.eta_seconds == FAST_TRANSFER_ETA


@pytest.mark.asyncio
async def test_quote_automatic_iris_fee(mock_environment, automatic_request):
    session = FakeHTTPSession([FakeHTTPResponse(200, [{"finalityThreshold": 1000, "minimumFee": 1.5}, {"finalityThreshold": 2000, "minimumFee": 0}])])
    protocol = CCTPProtocol(mock_environment, session=session)
    quote = await protocol.quote(automatic_request)
    assert quote.relay_fee == 1500
    assert session.requests[0][0] == "https://iris-api-sandbox.circle.com/v2/burn/USDC/fees/1/0"


@pytest.mark.asyncio
async def test_quote_automatic_iris_fee_floor(mock_environment, automatic_request):
    session = FakeHTTPSession([FakeHTTPResponse(200, [{"finalityThreshold": 1000, "minimumFee": 0}])])
    protocol = CCTPProtocol(mock_environment, session=session)
    quote = await protocol.quote(automatic_request)
    # Never below 1 bps
    assert quote.relay_fee == 1000


@pytest.mark.asyncio
async def test_fetch_attestation(mock_environment, usdc_request, burn_message):
    session = FakeHTTPSession([FakeHTTPResponse(404), make_iris_response(burn_message)])
    protocol = CCTPProtocol(mock_environment, poll_interval=0, session=session)
    handle = await protocol.create(usdc_request)
    handle.state = TransferState.initiated
    handle.source_txids = [TX_HASH]

    attestation_ids = await handle.fetch_attestation(5)

    assert attestation_ids == ["0x" + (5).to_bytes(32, "big").hex()]
    assert handle.state == TransferState.attested
    assert handle.message.amount == 10_000_000
    assert handle.message.mint_recipient == TEST_ADDRESS
    assert handle.attestation.attestation == b"\x11" * 65
    assert session.requests[0] == ("https://iris-api-sandbox.circle.com/v2/messages/1", {"transactionHash": TX_HASH})


async def _attested_handle(protocol, request, burn_message):
    protocol.session = FakeHTTPSession([make_iris_response(burn_message)])
    handle = await protocol.create(request)
    handle.state = TransferState.initiated
    handle.source_txids = [TX_HASH]
    await handle.fetch_attestation(5)
    return handle


@pytest.mark.asyncio
async def test_complete_already_received(mock_environment, usdc_request, burn_message, sepolia_signer):
    protocol = CCTPProtocol(mock_environment, poll_interval=0)
    handle = await _attested_handle(protocol, usdc_request, burn_message)

    with patch("xchain_transfer.cctp.protocol.is_message_received", return_value=True) as is_received, patch.object(EVMSigner, "transact") as transact:
        txids = await handle.complete_transfer(sepolia_signer)

    assert txids == []
    assert handle.state == TransferState.completed
    is_received.assert_called_once_with(sepolia_signer.web3, Network.testnet, (5).to_bytes(32, "big"))
    transact.assert_not_called()


@pytest.mark.asyncio
async def test_complete(mock_environment, usdc_request, burn_message, sepolia_signer):
    protocol = CCTPProtocol(mock_environment, poll_interval=0)
    handle = await _attested_handle(protocol, usdc_request, burn_message)

    receipt = {"transactionHash": HexBytes(b"\x03" * 32), "status": 1}
    with (
        patch("xchain_transfer.cctp.protocol.is_message_received", return_value=False),
        patch("xchain_transfer.cctp.protocol.prepare_receive_message") as prepare_receive,
        patch.object(EVMSigner, "transact", return_value=receipt),
    ):
        txids = await handle.complete_transfer(sepolia_signer)

    assert txids == ["0x" + "03" * 32]
    prepare_receive.assert_called_once_with(sepolia_signer.web3, Network.testnet, burn_message, b"\x11" * 65)


@pytest.mark.asyncio
async def test_complete_wrong_chain(mock_environment, usdc_request, burn_message, avalanche):
    protocol = CCTPProtocol(mock_environment, poll_interval=0)
    handle = await _attested_handle(protocol, usdc_request, burn_message)
    signer = EVMSigner(avalanche, MagicMock(), HotWallet.from_private_key(TEST_PRIVATE_KEY))

    with pytest.raises(AssertionError):
        await handle.complete_transfer(signer)

    assert handle.failed_from == TransferState.attested


@pytest.mark.asyncio
async def test_recover(config, avalanche):
    platform = EVMPlatform(decimals_cache={})
    environment = ChainEnvironment(config, [platform])
    protocol = CCTPProtocol(environment)

    receipt = {"transactionHash": HexBytes(TX_HASH), "status": 1, "blockNumber": 1, "logs": []}
    with patch.object(platform, "get_transaction_receipt", AsyncMock(return_value=receipt)) as get_receipt:
        handle = await protocol.recover(avalanche, TX_HASH)

    get_receipt.assert_awaited_once_with(avalanche, config, TX_HASH)
    assert handle.state == TransferState.recovered
    assert handle.request is None
    assert handle.source_txids == [TX_HASH]
    assert handle.automatic is False


@pytest.fixture()
def fuji_signer(avalanche) -> EVMSigner:
    return EVMSigner(avalanche, MagicMock(), HotWallet.from_private_key(TEST_PRIVATE_KEY))


def make_usdc(allowance: int) -> MagicMock:
    usdc = MagicMock()
    usdc.functions.allowance.return_value.call.return_value = allowance
    return usdc


BURN_RECEIPT = {"transactionHash": HexBytes(TX_HASH), "status": 1}


@pytest.mark.asyncio
async def test_initiate_manual(mock_environment, usdc_request, fuji_signer, fuji_usdc):
    protocol = CCTPProtocol(mock_environment)
    handle = await protocol.create(usdc_request)
    usdc = make_usdc(allowance=0)

    with (
        patch("xchain_transfer.cctp.protocol.get_deployed_contract", return_value=usdc),
        patch("xchain_transfer.cctp.protocol.prepare_approve_for_burn") as prepare_approve,
        patch("xchain_transfer.cctp.protocol.prepare_deposit_for_burn") as prepare_burn,
        patch.object(EVMSigner, "transact", return_value=BURN_RECEIPT) as transact,
    ):
        txids = await handle.initiate_transfer(fuji_signer)

    assert txids == [TX_HASH]
    assert handle.state == TransferState.initiated
    prepare_approve.assert_called_once_with(fuji_signer.web3, Network.testnet, burn_token=fuji_usdc, amount=10_000_000)
    prepare_burn.assert_called_once_with(
        fuji_signer.web3,
        Network.testnet,
        amount=10_000_000,
        destination_domain=0,
        mint_recipient=usdc_request.to_address.address,
        burn_token=fuji_usdc,
        max_fee=0,
        min_finality_threshold=FINALITY_THRESHOLD_STANDARD,
    )
    # Approve, then burn
    assert transact.call_count == 2


@pytest.mark.asyncio
async def test_initiate_allowance_already_set(mock_environment, usdc_request, fuji_signer):
    protocol = CCTPProtocol(mock_environment)
    handle = await protocol.create(usdc_request)

    with (
        patch("xchain_transfer.cctp.protocol.get_deployed_contract", return_value=make_usdc(allowance=10**12)),
        patch("xchain_transfer.cctp.protocol.prepare_approve_for_burn") as prepare_approve,
        patch("xchain_transfer.cctp.protocol.prepare_deposit_for_burn"),
        patch.object(EVMSigner, "transact", return_value=BURN_RECEIPT) as transact,
    ):
        await handle.initiate_transfer(fuji_signer)

    prepare_approve.assert_not_called()
    assert transact.call_count == 1


@pytest.mark.asyncio
async def test_initiate_fast_burns_with_accepted_fee(mock_environment, automatic_request, fuji_signer):
    # Iris would quote more by now, the accepted quote wins
    session = FakeHTTPSession([FakeHTTPResponse(200, [{"finalityThreshold": 1000, "minimumFee": 50}])])
    protocol = CCTPProtocol(mock_environment, session=session)
    handle = await protocol.create(automatic_request)
    quote = TransferQuote(source_amount=10_000_000, destination_amount=10_000_000 - 1000, relay_fee=1000)

    with (
        patch("xchain_transfer.cctp.protocol.get_deployed_contract", return_value=make_usdc(allowance=10**12)),
        patch("xchain_transfer.cctp.protocol.prepare_deposit_for_burn") as prepare_burn,
        patch.object(EVMSigner, "transact", return_value=BURN_RECEIPT),
    ):
        await handle.initiate_transfer(fuji_signer, quote)

    assert session.requests == []
    assert handle.quote is quote
    assert prepare_burn.call_args.kwargs["max_fee"] == 1000
    assert prepare_burn.call_args.kwargs["min_finality_threshold"] == FINALITY_THRESHOLD_FAST


@pytest.mark.asyncio
async def test_orchestrated_fast_transfer_reads_fee_once(mock_environment, automatic_request, fuji_signer, destination, fuji_usdc):
    session = FakeHTTPSession(
        [
            FakeHTTPResponse(200, [{"finalityThreshold": 1000, "minimumFee": 1}]),
            FakeHTTPResponse(200, [{"finalityThreshold": 1000, "minimumFee": 5000}]),
        ]
    )
    protocol = CCTPProtocol(mock_environment, session=session)
    orchestrator = TransferOrchestrator(protocol, await_attestation=False)
    source = SignerHandle(chain=fuji_signer.chain, address=ChainAddress(fuji_signer.chain, fuji_signer.address), signer=fuji_signer)

    with (
        patch("xchain_transfer.cctp.protocol.get_deployed_contract", return_value=make_usdc(allowance=10**12)),
        patch("xchain_transfer.cctp.protocol.prepare_deposit_for_burn") as prepare_burn,
        patch.object(EVMSigner, "transact", return_value=BURN_RECEIPT),
    ):
        result = await orchestrator.transfer(
            token=token_id(fuji_signer.chain, fuji_usdc),
            amount=10_000_000,
            source=source,
            destination=destination,
            delivery=DeliveryOptions(automatic=True),
        )

    assert isinstance(result, Completed), f"Got {result}"
    assert result.state == TransferState.initiated
    assert len(session.requests) == 1
    assert prepare_burn.call_args.kwargs["max_fee"] == 1000


@pytest.mark.asyncio
async def test_quote_fee_eats_whole_amount(mock_environment, source, destination, fuji_usdc):
    protocol = CCTPProtocol(mock_environment, fast_transfer_fee_bps=1)
    # 1 bps of 1 base unit rounds up to 1
    request = create_transfer_request(token_id(source.chain, fuji_usdc), 1, source.address, destination.address, delivery=DeliveryOptions(automatic=True))
    with pytest.raises(UnsupportedTransfer):
        await protocol.quote(request)

    request = create_transfer_request(token_id(source.chain, fuji_usdc), 2, source.address, destination.address, delivery=DeliveryOptions(automatic=True))
    quote = await protocol.quote(request)
    assert quote.destination_amount == 1
