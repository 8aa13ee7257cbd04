"""Wormhole Token Bridge as a transfer protocol.

Locks tokens on the source chain and mints the wrapped representation on
the destination chain, or the other way around when moving a wrapped token home.

- Native gas tokens are wrapped by the bridge with ``wrapAndTransferETH()``

- ERC-20 tokens are approved to the bridge and sent with ``transferTokens()``

- The guardian signed VAA is fetched from Wormholescan

- The destination signer redeems with ``completeTransfer()``

Automatic transfers go through the Wormhole Token Bridge Relayer instead.
The relayer contract takes a fee in the transferred token, and the off-chain relayer
redeems on the destination chain, swapping the requested part of the transfer to
native gas for the recipient. Completing such a transfer ourselves is only needed
when the relayer has not got to it: the recipient then redeems through the relayer
contract without paying the fee.
"""

import logging
from typing import Optional

import aiohttp
from web3 import Web3
from web3.contract import Contract
from web3.logs import DISCARD
from web3.types import TxReceipt

from xchain_transfer.abi import get_deployed_contract
from xchain_transfer.chain import ChainEndpoint, Network, get_chain_by_wormhole_id
from xchain_transfer.evm.platform import EVMSigner
from xchain_transfer.platform import ChainSigner
from xchain_transfer.tokenbridge.constants import (
    NATIVE_TOKEN_DECIMALS,
    PAYLOAD_TRANSFER_WITH_PAYLOAD,
    TOKEN_BRIDGE,
    TOKEN_BRIDGE_RELAYER,
    WORMHOLE_CORE,
    WORMHOLESCAN_API_URLS,
)
from xchain_transfer.tokenbridge.vaa import (
    VAA,
    TokenTransferPayload,
    TransferWithRelay,
    decode_token_transfer_payload,
    decode_transfer_with_relay,
    format_message_id,
    parse_message_id,
    parse_vaa,
    to_bytes32,
    truncate_amount,
)
from xchain_transfer.tokenbridge.wormholescan import fetch_signed_vaa
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


def get_token_bridge(web3: Web3, network: Network, chain: ChainEndpoint) -> Contract:
    return get_deployed_contract(web3, "wormhole/TokenBridge.json", TOKEN_BRIDGE[network][chain.name])


def get_token_bridge_relayer(web3: Web3, network: Network, chain: ChainEndpoint) -> Contract:
    return get_deployed_contract(web3, "wormhole/TokenBridgeRelayer.json", TOKEN_BRIDGE_RELAYER[network][chain.name])


def get_wormhole_core(web3: Web3, network: Network, chain: ChainEndpoint) -> Contract:
    return get_deployed_contract(web3, "wormhole/Implementation.json", WORMHOLE_CORE[network][chain.name])


def get_message_id_from_receipt(web3: Web3, network: Network, chain: ChainEndpoint, receipt: TxReceipt) -> str:
    """Find the Token Bridge message a transaction published.

    Relayed transfers publish through the Token Bridge as well.

    :raise ValueError:
        If the transaction did not publish a Token Bridge message
    """
    core = get_wormhole_core(web3, network, chain)
    emitter = Web3.to_checksum_address(TOKEN_BRIDGE[network][chain.name])

    for event in core.events.LogMessagePublished().process_receipt(receipt, errors=DISCARD):
        if event["address"] != core.address or event["args"]["sender"] != emitter:
            continue
        return format_message_id(chain.wormhole_chain_id, to_bytes32(emitter), event["args"]["sequence"])

    raise ValueError(f"Transaction {Web3.to_hex(receipt['transactionHash'])} did not publish a Token Bridge message on {chain.name}")


class TokenBridgeTransfer(TransferHandle):
    """One Token Bridge transfer."""

    def __init__(
        self,
        protocol: "TokenBridgeProtocol",
        request: TransferRequest | None,
        source_chain: ChainEndpoint,
        state: TransferState = TransferState.created,
    ):
        super().__init__(request, state)
        self.protocol = protocol
        self.source_chain = source_chain
        #: ``emitterChain/emitterAddress/sequence``
        self.message_id: Optional[str] = None
        #: Signed VAA bytes, set after the attestation phase
        self.signed_vaa: Optional[bytes] = None
        self.vaa: Optional[VAA] = None
        self.transfer: Optional[TokenTransferPayload] = None
        #: Set after the attestation phase when the transfer goes through the Token Bridge Relayer
        self.relay: Optional[TransferWithRelay] = None

    async def _approve(self, signer: EVMSigner, spender: str):
        request = self.request
        token = get_deployed_contract(signer.web3, "ERC20.json", request.token.address)
        allowance = await run_blocking(token.functions.allowance(signer.address, spender).call)
        if allowance < request.amount:
            logger.info("Approving %d of %s to %s, current allowance %d", request.amount, request.token.address, spender, allowance)
            await signer.transact_async(token.functions.approve(spender, request.amount))

    async def _initiate(self, signer: ChainSigner) -> list[str]:
        assert isinstance(signer, EVMSigner), f"Token Bridge needs an EVM signer, got {signer}"
        assert signer.chain == self.source_chain, f"Signer {signer} is not on the source chain {self.source_chain.name}"

        request = self.request
        network = self.protocol.network
        web3 = signer.web3
        core = get_wormhole_core(web3, network, self.source_chain)

        message_fee = await run_blocking(core.functions.messageFee().call)
        recipient_chain = request.to_chain.wormhole_chain_id
        recipient = to_bytes32(request.to_address.address)
        nonce = 0

        if request.automatic:
            relayer = get_token_bridge_relayer(web3, network, self.source_chain)
            native_gas = request.native_gas or 0
            if request.token.is_native:
                # The relayer contract keeps the message fee out of the value
                func = relayer.functions.wrapAndTransferEthWithRelay(native_gas, recipient_chain, recipient, nonce)
                value = request.amount + message_fee
            else:
                await self._approve(signer, relayer.address)
                token_address = Web3.to_checksum_address(request.token.address)
                func = relayer.functions.transferTokensWithRelay(token_address, request.amount, native_gas, recipient_chain, recipient, nonce)
                value = message_fee
        elif request.token.is_native:
            token_bridge = get_token_bridge(web3, network, self.source_chain)
            if request.payload:
                func = token_bridge.functions.wrapAndTransferETHWithPayload(recipient_chain, recipient, nonce, request.payload)
            else:
                func = token_bridge.functions.wrapAndTransferETH(recipient_chain, recipient, 0, nonce)
            value = request.amount + message_fee
        else:
            token_bridge = get_token_bridge(web3, network, self.source_chain)
            await self._approve(signer, token_bridge.address)
            token_address = Web3.to_checksum_address(request.token.address)
            if request.payload:
                func = token_bridge.functions.transferTokensWithPayload(token_address, request.amount, recipient_chain, recipient, nonce, request.payload)
            else:
                func = token_bridge.functions.transferTokens(token_address, request.amount, recipient_chain, recipient, 0, nonce)
            value = message_fee

        receipt = await signer.transact_async(func, value=value)
        self.message_id = get_message_id_from_receipt(web3, network, self.source_chain, receipt)
        return [Web3.to_hex(receipt["transactionHash"]), self.message_id]

    async def _fetch_attestation(self, timeout: float) -> list[str]:
        emitter_chain, emitter_address, sequence = parse_message_id(self.message_id)
        self.signed_vaa = await fetch_signed_vaa(
            emitter_chain,
            emitter_address,
            sequence,
            timeout=timeout,
            poll_interval=self.protocol.poll_interval,
            api_base_url=self.protocol.api_base_url,
            session=self.protocol.session,
        )
        self.vaa = parse_vaa(self.signed_vaa)
        self.transfer = decode_token_transfer_payload(self.vaa.payload)
        if self.protocol.is_relayed(self.transfer):
            self.relay = decode_transfer_with_relay(self.transfer.payload)
            logger.info("VAA %s relays %d to %s on chain %d, relayer fee %d", self.vaa.message_id, self.transfer.amount, self.relay.recipient_evm_address, self.transfer.to_chain, self.relay.target_relayer_fee)
        else:
            logger.info("VAA %s moves %d to %s on chain %d", self.vaa.message_id, self.transfer.amount, self.transfer.to_evm_address, self.transfer.to_chain)
        return [self.vaa.message_id]

    async def _complete(self, signer: ChainSigner) -> list[str]:
        assert isinstance(signer, EVMSigner), f"Token Bridge needs an EVM signer, got {signer}"
        network = self.protocol.network
        destination_chain = get_chain_by_wormhole_id(network, self.transfer.to_chain)
        assert signer.chain == destination_chain, f"VAA is for {destination_chain.name}, signer is {signer}"

        token_bridge = get_token_bridge(signer.web3, network, destination_chain)
        if await run_blocking(token_bridge.functions.isTransferCompleted(self.vaa.digest).call):
            logger.info("VAA %s already redeemed on %s", self.vaa.message_id, destination_chain.name)
            return []

        if self.relay is not None:
            # Only the recipient may redeem a relayed transfer without paying for the native gas swap
            assert self.relay.recipient_evm_address == Web3.to_checksum_address(signer.address), f"Relayed transfer is for {self.relay.recipient_evm_address}, signer is {signer}"
            relayer = get_token_bridge_relayer(signer.web3, network, destination_chain)
            func = relayer.functions.completeTransferWithRelay(self.signed_vaa)
        elif self.transfer.payload_id == PAYLOAD_TRANSFER_WITH_PAYLOAD:
            func = token_bridge.functions.completeTransferWithPayload(self.signed_vaa)
        else:
            func = token_bridge.functions.completeTransfer(self.signed_vaa)

        receipt = await signer.transact_async(func)
        return [Web3.to_hex(receipt["transactionHash"])]


class TokenBridgeProtocol(TransferProtocol):
    """Wormhole Token Bridge between the EVM chains of a network."""

    name = "TokenBridge"

    def __init__(
        self,
        environment,
        poll_interval: float = 5.0,
        session: aiohttp.ClientSession | None = None,
    ):
        self.environment = environment
        self.poll_interval = poll_interval
        self.session = session

    def __repr__(self):
        return f"<TokenBridgeProtocol {self.network.value}>"

    @property
    def network(self) -> Network:
        return self.environment.network

    @property
    def api_base_url(self) -> str:
        return WORMHOLESCAN_API_URLS[self.network]

    def is_relayed(self, transfer: TokenTransferPayload) -> bool:
        """Was the transfer sent to a Token Bridge Relayer instead of the recipient."""
        if transfer.payload_id != PAYLOAD_TRANSFER_WITH_PAYLOAD:
            return False
        return transfer.to in {to_bytes32(relayer) for relayer in TOKEN_BRIDGE_RELAYER[self.network].values()}

    def validate(self, request: TransferRequest):
        """Check the request can be moved over the Token Bridge.

        :raise UnsupportedTransfer:
            For chains without a Token Bridge deployment, or automatic transfers
            the Token Bridge Relayer cannot deliver
        """
        for chain in (request.from_chain, request.to_chain):
            if not chain.is_evm or chain.name not in TOKEN_BRIDGE[self.network]:
                raise UnsupportedTransfer(f"No Token Bridge known on {chain.name}")

        if request.from_chain == request.to_chain:
            raise UnsupportedTransfer(f"Source and destination are both {request.from_chain.name}")

        if request.automatic:
            for chain in (request.from_chain, request.to_chain):
                if chain.name not in TOKEN_BRIDGE_RELAYER[self.network]:
                    raise UnsupportedTransfer(f"No Token Bridge Relayer known on {chain.name}, use a manual transfer")
            if request.payload:
                raise UnsupportedTransfer("Automatic Token Bridge transfers cannot carry a payload")

    async def create(self, request: TransferRequest) -> TokenBridgeTransfer:
        self.validate(request)
        return TokenBridgeTransfer(self, request, source_chain=request.from_chain)

    async def get_relayer_fee(self, request: TransferRequest, decimals: int) -> int:
        """Fee the Token Bridge Relayer charges for delivering to the destination chain, in token base units."""
        config = self.environment.config
        chain = request.from_chain
        web3 = self.environment.get_platform(chain).get_web3(chain, config)
        relayer = get_token_bridge_relayer(web3, self.network, chain)
        if request.token.is_native:
            token_address = await run_blocking(relayer.functions.WETH().call)
        else:
            token_address = Web3.to_checksum_address(request.token.address)
        fee = await run_blocking(relayer.functions.calculateRelayerFee(request.to_chain.wormhole_chain_id, token_address, decimals).call)
        logger.info("Token Bridge Relayer fee %s -> %s: %d", chain.name, request.to_chain.name, fee)
        return fee

    async def quote(self, request: TransferRequest) -> TransferQuote:
        self.validate(request)
        decimals = await self.environment.get_decimals(request.token)
        transferred = truncate_amount(request.amount, decimals)
        warnings = []
        if transferred != request.amount:
            warnings.append(f"Token Bridge moves at most 8 decimals, {request.amount - transferred} base units stay on {request.from_chain.name}")

        if not request.automatic:
            return TransferQuote(
                source_amount=request.amount,
                destination_amount=transferred,
                warnings=warnings,
            )

        if request.token.is_native:
            decimals = NATIVE_TOKEN_DECIMALS
        relay_fee = await self.get_relayer_fee(request, decimals)
        native_gas = request.native_gas or 0
        return TransferQuote(
            source_amount=request.amount,
            destination_amount=transferred - relay_fee - native_gas,
            relay_fee=relay_fee,
            destination_native_gas=native_gas,
            warnings=warnings,
        )

    async def recover(self, chain: ChainEndpoint, txid: str) -> TokenBridgeTransfer:
        """Resume from a source chain transaction that published a Token Bridge message."""
        if chain.name not in TOKEN_BRIDGE[self.network]:
            raise UnsupportedTransfer(f"No Token Bridge known on {chain.name}")

        config = self.environment.config
        platform = self.environment.get_platform(chain)
        receipt = await platform.get_transaction_receipt(chain, config, txid)
        message_id = get_message_id_from_receipt(platform.get_web3(chain, config), self.network, chain, receipt)
        logger.info("Recovered Token Bridge message %s from %s", message_id, txid)

        handle = TokenBridgeTransfer(self, None, source_chain=chain, state=TransferState.recovered)
        handle.message_id = message_id
        handle.source_txids = [Web3.to_hex(receipt["transactionHash"]), message_id]
        return handle
