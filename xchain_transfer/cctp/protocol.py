"""Circle CCTP V2 as a transfer protocol.

Moves native USDC between EVM chains by burning on the source chain
and minting on the destination chain.

- Manual transfers use standard finality and pay no fee

- Automatic transfers are fast transfers: the burn asks for fast finality
  and pays Circle at most the quoted fee for the earlier attestation

There is no relayer integration. Whatever the finality, USDC is only minted
when someone calls ``receiveMessage()`` on the destination chain, normally
the destination signer in the complete phase. Completing a message that was
already received is a no-op.

Native gas drop-off and payloads are not supported.
"""

import logging
from typing import Optional

import aiohttp
from web3 import Web3

from xchain_transfer.abi import get_deployed_contract
from xchain_transfer.cctp.attestation import CCTPAttestation, calculate_fee, fetch_attestation, fetch_fast_transfer_fee_bps
from xchain_transfer.cctp.constants import (
    DEFAULT_FAST_TRANSFER_FEE_BPS,
    FINALITY_THRESHOLD_FAST,
    FINALITY_THRESHOLD_STANDARD,
    IRIS_API_URLS,
    TOKEN_MESSENGER_V2,
    USDC_TOKEN,
)
from xchain_transfer.cctp.message import CCTPBurnMessage, decode_burn_message
from xchain_transfer.cctp.receive import is_message_received, prepare_receive_message
from xchain_transfer.cctp.transfer import prepare_approve_for_burn, prepare_deposit_for_burn
from xchain_transfer.chain import ChainEndpoint, Network, get_chain_by_cctp_domain
from xchain_transfer.evm.platform import EVMSigner
from xchain_transfer.platform import ChainSigner
from xchain_transfer.transfer import (
    TransferHandle,
    TransferProtocol,
    TransferQuote,
    TransferRequest,
    TransferState,
    UnsupportedTransfer,
)
from xchain_transfer.utils import run_blocking

logger = logging.getLogger(__name__)


#: Rough time until Circle attests a standard finality burn, seconds
STANDARD_TRANSFER_ETA = 15 * 60

#: Rough time until Circle attests a fast finality burn, seconds
FAST_TRANSFER_ETA = 20


class CCTPTransfer(TransferHandle):
    """One CCTP burn-and-mint."""

    def __init__(
        self,
        protocol: "CCTPProtocol",
        request: TransferRequest | None,
        source_chain: ChainEndpoint,
        state: TransferState = TransferState.created,
    ):
        super().__init__(request, state)
        self.protocol = protocol
        self.source_chain = source_chain
        #: Set after the attestation phase
        self.attestation: Optional[CCTPAttestation] = None
        #: Set after the attestation phase
        self.message: Optional[CCTPBurnMessage] = None

    async def _initiate(self, signer: ChainSigner) -> list[str]:
        assert isinstance(signer, EVMSigner), f"CCTP needs an EVM signer, got {signer}"
        assert signer.chain == self.source_chain, f"Signer {signer} is not on the source chain {self.source_chain.name}"

        request = self.request
        network = self.protocol.network
        web3 = signer.web3
        burn_token = request.token.address

        # The fee the caller accepted bounds the burn
        quote = self.quote or await self.protocol.quote(request)
        max_fee = quote.relay_fee
        finality = FINALITY_THRESHOLD_FAST if request.automatic else FINALITY_THRESHOLD_STANDARD

        usdc = get_deployed_contract(web3, "ERC20.json", burn_token)
        allowance = await run_blocking(usdc.functions.allowance(signer.address, Web3.to_checksum_address(TOKEN_MESSENGER_V2[network])).call)
        if allowance < request.amount:
            logger.info("Approving %d USDC to TokenMessengerV2, current allowance %d", request.amount, allowance)
            approve_fn = prepare_approve_for_burn(web3, network, burn_token=burn_token, amount=request.amount)
            await signer.transact_async(approve_fn)

        burn_fn = prepare_deposit_for_burn(
            web3,
            network,
            amount=request.amount,
            destination_domain=request.to_chain.cctp_domain,
            mint_recipient=request.to_address.address,
            burn_token=burn_token,
            max_fee=max_fee,
            min_finality_threshold=finality,
        )
        receipt = await signer.transact_async(burn_fn)
        return [Web3.to_hex(receipt["transactionHash"])]

    async def _fetch_attestation(self, timeout: float) -> list[str]:
        self.attestation = await fetch_attestation(
            source_domain=self.source_chain.cctp_domain,
            transaction_hash=self.source_txids[0],
            timeout=timeout,
            poll_interval=self.protocol.poll_interval,
            api_base_url=self.protocol.api_base_url,
            session=self.protocol.session,
        )
        self.message = decode_burn_message(self.attestation.message)
        return [Web3.to_hex(self.message.nonce)]

    async def _complete(self, signer: ChainSigner) -> list[str]:
        assert isinstance(signer, EVMSigner), f"CCTP needs an EVM signer, got {signer}"
        network = self.protocol.network
        destination_chain = get_chain_by_cctp_domain(network, self.message.destination_domain)
        assert signer.chain == destination_chain, f"Message is for {destination_chain.name}, signer is {signer}"

        if await run_blocking(is_message_received, signer.web3, network, self.message.nonce):
            logger.info("CCTP message %s already received on %s", Web3.to_hex(self.message.nonce), destination_chain.name)
            return []

        receive_fn = prepare_receive_message(signer.web3, network, self.attestation.message, self.attestation.attestation)
        receipt = await signer.transact_async(receive_fn)
        return [Web3.to_hex(receipt["transactionHash"])]


class CCTPProtocol(TransferProtocol):
    """Circle CCTP V2 between the EVM chains of a network."""

    name = "CCTP"

    def __init__(
        self,
        environment,
        poll_interval: float = 5.0,
        fast_transfer_fee_bps: float | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        """
        :param environment:
            :py:class:`~xchain_transfer.environment.ChainEnvironment` this protocol is registered in

        :param poll_interval:
            Seconds between Iris API polls

        :param fast_transfer_fee_bps:
            Fee paid for automatic transfers. If not given, read from the Iris API.

        :param session:
            Shared aiohttp session for the Iris API calls
        """
        self.environment = environment
        self.poll_interval = poll_interval
        self.fast_transfer_fee_bps = fast_transfer_fee_bps
        self.session = session

    def __repr__(self):
        return f"<CCTPProtocol {self.network.value}>"

    @property
    def network(self) -> Network:
        return self.environment.network

    @property
    def api_base_url(self) -> str:
        return IRIS_API_URLS[self.network]

    def get_usdc_address(self, chain: ChainEndpoint) -> Optional[str]:
        return USDC_TOKEN[self.network].get(chain.name)

    def validate(self, request: TransferRequest):
        """Check the request can be moved over CCTP.

        :raise UnsupportedTransfer:
            For non-USDC tokens, chains without CCTP, payloads or native gas
        """
        for chain in (request.from_chain, request.to_chain):
            if not chain.is_evm or chain.cctp_domain is None:
                raise UnsupportedTransfer(f"CCTP is not available on {chain.name}")

        if request.from_chain == request.to_chain:
            raise UnsupportedTransfer(f"Source and destination are both {request.from_chain.name}")

        usdc = self.get_usdc_address(request.from_chain)
        if request.token.is_native or usdc is None or request.token.address.lower() != usdc.lower():
            raise UnsupportedTransfer(f"CCTP only moves native USDC {usdc} on {request.from_chain.name}, got {request.token.address}")

        if request.payload:
            raise UnsupportedTransfer("CCTP transfers cannot carry a payload")

        if request.native_gas:
            raise UnsupportedTransfer("CCTP does not support native gas drop-off")

    async def create(self, request: TransferRequest) -> CCTPTransfer:
        self.validate(request)
        return CCTPTransfer(self, request, source_chain=request.from_chain)

    async def get_max_fee(self, request: TransferRequest) -> int:
        """Fee we allow Circle to take for a fast transfer, in USDC base units.

        Manual transfers use standard finality and pay nothing.
        """
        if not request.automatic:
            return 0

        fee_bps = self.fast_transfer_fee_bps
        if fee_bps is None:
            fee_bps = await fetch_fast_transfer_fee_bps(
                request.from_chain.cctp_domain,
                request.to_chain.cctp_domain,
                FINALITY_THRESHOLD_FAST,
                api_base_url=self.api_base_url,
                session=self.session,
            )
            logger.info("Iris fast transfer fee for %s -> %s: %s bps", request.from_chain.name, request.to_chain.name, fee_bps)
            # Fee can move between the quote and the burn
            fee_bps = max(fee_bps, DEFAULT_FAST_TRANSFER_FEE_BPS)

        return calculate_fee(request.amount, fee_bps)

    async def quote(self, request: TransferRequest) -> TransferQuote:
        self.validate(request)
        fee = await self.get_max_fee(request)
        if fee >= request.amount:
            raise UnsupportedTransfer(f"Fast transfer fee {fee} leaves nothing of the amount {request.amount}")
        return TransferQuote(
            source_amount=request.amount,
            destination_amount=request.amount - fee,
            relay_fee=fee,
            eta_seconds=FAST_TRANSFER_ETA if request.automatic else STANDARD_TRANSFER_ETA,
        )

    async def recover(self, chain: ChainEndpoint, txid: str) -> CCTPTransfer:
        """Resume from a ``depositForBurn()`` transaction.

        The transaction must be mined and successful. The burn details are read
        from the attestation.
        """
        if chain.cctp_domain is None:
            raise UnsupportedTransfer(f"CCTP is not available on {chain.name}")

        platform = self.environment.get_platform(chain)
        receipt = await platform.get_transaction_receipt(chain, self.environment.config, txid)
        logger.info("Recovered CCTP burn %s from block %d on %s", txid, receipt["blockNumber"], chain.name)

        handle = CCTPTransfer(self, None, source_chain=chain, state=TransferState.recovered)
        handle.source_txids = [Web3.to_hex(receipt["transactionHash"])]
        return handle
