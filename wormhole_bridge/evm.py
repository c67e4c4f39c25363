"""EVM chain backend.

Implements :py:class:`~wormhole_bridge.endpoint.ChainEndpoint` and
:py:class:`~wormhole_bridge.endpoint.Signer` for EVM chains with ``web3.py``
and ``eth_account``.

Contracts used:

- **TokenBridge** — ``attestToken()``, ``transferTokens()``, ``wrapAndTransferETH()``,
  ``completeTransfer()``, ``createWrapped()``, ``wrappedAsset()``, ``isTransferCompleted()``
- **Core bridge** — ``messageFee()`` and the ``LogMessagePublished`` event
  carrying the message sequence
- **TokenBridgeRelayer** — ``calculateRelayerFee()``, ``transferTokensWithRelay()``
  for automatic delivery

Executor delivery is not built by this backend: executor quotes and
relay instructions are produced off-chain by the executor service.

Example::

    from wormhole_bridge.chain import ChainRef, Network
    from wormhole_bridge.config import ChainConfig
    from wormhole_bridge.evm import create_evm_endpoint, create_evm_signer

    sepolia = ChainRef(Network.testnet, "Sepolia")
    config = ChainConfig(rpc_url=..., token_bridge=..., core_bridge=...)

    endpoint = create_evm_endpoint(sepolia, config)
    signer = create_evm_signer(sepolia, config, os.environ["PRIVATE_KEY"])
"""

import logging
import threading

from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_typing import HexAddress
from eth_utils import to_checksum_address
from web3 import Web3
from web3.contract import Contract
from web3.contract.contract import ContractFunction
from web3.exceptions import TimeExhausted
from web3.logs import DISCARD
from web3.middleware import ExtraDataToPOAMiddleware

from wormhole_bridge.chain import ChainRef, TokenRef, to_universal_address
from wormhole_bridge.config import ChainConfig
from wormhole_bridge.endpoint import ChainEndpointError, TransactionNotConfirmed, TransactionRejected, UnsignedTransaction
from wormhole_bridge.models import Attestation, DeliveryMode, MessageId, TransferIntent
from wormhole_bridge.vaa import PAYLOAD_TRANSFER_WITH_PAYLOAD, TransferBody

logger = logging.getLogger(__name__)

#: Zero address returned by ``wrappedAsset()`` for unregistered tokens
ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

#: We do not batch messages
WORMHOLE_NONCE = 0


def _fn(name: str, inputs: list[tuple[str, str]], outputs: tuple[str, ...] = (), mutability: str = "nonpayable") -> dict:
    return {
        "type": "function",
        "name": name,
        "inputs": [{"name": n, "type": t} for n, t in inputs],
        "outputs": [{"name": "", "type": t} for t in outputs],
        "stateMutability": mutability,
    }


TOKEN_BRIDGE_ABI = [
    _fn("attestToken", [("tokenAddress", "address"), ("nonce", "uint32")], ("uint64",), "payable"),
    _fn(
        "transferTokens",
        [("token", "address"), ("amount", "uint256"), ("recipientChain", "uint16"), ("recipient", "bytes32"), ("arbiterFee", "uint256"), ("nonce", "uint32")],
        ("uint64",),
        "payable",
    ),
    _fn(
        "transferTokensWithPayload",
        [("token", "address"), ("amount", "uint256"), ("recipientChain", "uint16"), ("recipient", "bytes32"), ("nonce", "uint32"), ("payload", "bytes")],
        ("uint64",),
        "payable",
    ),
    _fn(
        "wrapAndTransferETH",
        [("recipientChain", "uint16"), ("recipient", "bytes32"), ("arbiterFee", "uint256"), ("nonce", "uint32")],
        ("uint64",),
        "payable",
    ),
    _fn(
        "wrapAndTransferETHWithPayload",
        [("recipientChain", "uint16"), ("recipient", "bytes32"), ("nonce", "uint32"), ("payload", "bytes")],
        ("uint64",),
        "payable",
    ),
    _fn("completeTransfer", [("encodedVm", "bytes")]),
    _fn("completeTransferWithPayload", [("encodedVm", "bytes")], ("bytes",)),
    _fn("createWrapped", [("encodedVm", "bytes")], ("address",)),
    _fn("wrappedAsset", [("tokenChainId", "uint16"), ("tokenAddress", "bytes32")], ("address",), "view"),
    _fn("isTransferCompleted", [("hash", "bytes32")], ("bool",), "view"),
    _fn("WETH", [], ("address",), "view"),
]

CORE_BRIDGE_ABI = [
    _fn("messageFee", [], ("uint256",), "view"),
    {
        "type": "event",
        "name": "LogMessagePublished",
        "anonymous": False,
        "inputs": [
            {"name": "sender", "type": "address", "indexed": True},
            {"name": "sequence", "type": "uint64", "indexed": False},
            {"name": "nonce", "type": "uint32", "indexed": False},
            {"name": "payload", "type": "bytes", "indexed": False},
            {"name": "consistencyLevel", "type": "uint8", "indexed": False},
        ],
    },
]

TOKEN_BRIDGE_RELAYER_ABI = [
    _fn("calculateRelayerFee", [("targetChainId", "uint16"), ("token", "address"), ("decimals", "uint8")], ("uint256",), "view"),
    _fn(
        "transferTokensWithRelay",
        [("token", "address"), ("amount", "uint256"), ("toNativeTokenAmount", "uint256"), ("targetChain", "uint16"), ("targetRecipient", "bytes32"), ("batchId", "uint32")],
        ("uint64",),
        "payable",
    ),
    _fn(
        "wrapAndTransferEthWithRelay",
        [("toNativeTokenAmount", "uint256"), ("targetChain", "uint16"), ("targetRecipient", "bytes32"), ("batchId", "uint32")],
        ("uint64",),
        "payable",
    ),
]

ERC20_ABI = [
    _fn("balanceOf", [("account", "address")], ("uint256",), "view"),
    _fn("allowance", [("owner", "address"), ("spender", "address")], ("uint256",), "view"),
    _fn("approve", [("spender", "address"), ("amount", "uint256")], ("bool",)),
    _fn("decimals", [], ("uint8",), "view"),
]


def create_web3(rpc_url: str) -> Web3:
    """Connect to a JSON-RPC endpoint.

    The POA middleware is injected so the same connection works
    on BNB Chain and Polygon as well.
    """
    web3 = Web3(Web3.HTTPProvider(rpc_url, request_kwargs={"timeout": 60}))
    web3.middleware_onion.inject(ExtraDataToPOAMiddleware, layer=0)
    return web3


class EvmChainEndpoint:
    """Wormhole token bridge access on one EVM chain."""

    def __init__(self, chain: ChainRef, config: ChainConfig, web3: Web3 | None = None):
        assert chain.platform == "Evm", f"{chain} is not an EVM chain"
        self.chain = chain
        self.config = config
        self.web3 = web3 or create_web3(config.rpc_url)

        self.token_bridge: Contract = self.web3.eth.contract(address=to_checksum_address(config.token_bridge), abi=TOKEN_BRIDGE_ABI)
        self.core_bridge: Contract = self.web3.eth.contract(address=to_checksum_address(config.core_bridge), abi=CORE_BRIDGE_ABI)

        if config.relayer:
            self.relayer: Contract | None = self.web3.eth.contract(address=to_checksum_address(config.relayer), abi=TOKEN_BRIDGE_RELAYER_ABI)
        else:
            self.relayer = None

    def __repr__(self) -> str:
        return f"<EvmChainEndpoint {self.chain} token bridge {self.token_bridge.address}>"

    def _erc20(self, address: str) -> Contract:
        return self.web3.eth.contract(address=to_checksum_address(address), abi=ERC20_ABI)

    def _local_token_address(self, token: TokenRef) -> HexAddress:
        assert token.chain == self.chain, f"{token} is not on {self.chain}"
        if token.is_native:
            return self.get_native_wrapped_token()
        return to_checksum_address(token.address)

    def _build(self, func: ContractFunction, sender: str, description: str, value: int = 0) -> UnsignedTransaction:
        tx = func.build_transaction(
            {
                "from": to_checksum_address(sender),
                "value": value,
                "gas": self.config.gas_limit,
                "chainId": self.web3.eth.chain_id,
            }
        )
        return UnsignedTransaction(chain=self.chain, description=description, data=tx)

    def _approve_if_needed(self, token_address: HexAddress, owner: str, spender: HexAddress, amount: int) -> list[UnsignedTransaction]:
        token = self._erc20(token_address)
        allowance = token.functions.allowance(to_checksum_address(owner), spender).call()
        if allowance >= amount:
            logger.debug("Allowance %d of %s for %s already covers %d", allowance, token_address, spender, amount)
            return []
        return [self._build(token.functions.approve(spender, amount), owner, f"ERC20.approve({token_address})")]

    def get_message_fee(self) -> int:
        """Core bridge fee in wei for publishing one message."""
        return self.core_bridge.functions.messageFee().call()

    def get_balance(self, address: str, token: TokenRef) -> int | None:
        address = to_checksum_address(address)
        if token.is_native:
            return self.web3.eth.get_balance(address)

        token_address = to_checksum_address(token.address)
        if len(self.web3.eth.get_code(token_address)) == 0:
            return None
        return self._erc20(token_address).functions.balanceOf(address).call()

    def submit(self, signed_tx: bytes) -> list[str]:
        try:
            tx_hash = self.web3.eth.send_raw_transaction(signed_tx)
        except Exception as e:
            raise TransactionRejected(f"{self.chain} refused transaction: {e}") from e

        txid = Web3.to_hex(tx_hash)
        logger.info("Broadcasted %s on %s, waiting for receipt", txid, self.chain)
        try:
            receipt = self.web3.eth.wait_for_transaction_receipt(tx_hash, timeout=self.config.confirmation_timeout)
        except TimeExhausted as e:
            raise TransactionNotConfirmed(f"Transaction {txid} not mined on {self.chain} in {self.config.confirmation_timeout}s", txid=txid) from e

        if receipt["status"] != 1:
            raise TransactionRejected(f"Transaction {txid} reverted on {self.chain}", txid=txid)

        return [txid]

    def parse_transaction(self, txid: str) -> list[MessageId]:
        receipt = self.web3.eth.get_transaction_receipt(txid)
        events = self.core_bridge.events.LogMessagePublished().process_receipt(receipt, errors=DISCARD)

        messages = []
        for event in events:
            if event["address"] != self.core_bridge.address:
                continue
            messages.append(
                MessageId(
                    chain_id=self.chain.wormhole_chain_id,
                    emitter=to_universal_address(event["args"]["sender"]).hex(),
                    sequence=event["args"]["sequence"],
                )
            )

        if not messages:
            raise ChainEndpointError(f"Transaction {txid} on {self.chain} did not publish a Wormhole message")

        return messages

    def get_native_wrapped_token(self) -> HexAddress:
        return to_checksum_address(self.token_bridge.functions.WETH().call())

    def get_wrapped_asset(self, token: TokenRef) -> str | None:
        if token.chain == self.chain:
            return self._local_token_address(token)

        assert not token.is_native, f"Resolve {token} to its wrapped native token on its own chain first"

        address = self.token_bridge.functions.wrappedAsset(
            token.chain.wormhole_chain_id,
            to_universal_address(token.address),
        ).call()

        if address == ZERO_ADDRESS:
            return None
        return to_checksum_address(address)

    def is_transfer_completed(self, attestation: Attestation) -> bool:
        return self.token_bridge.functions.isTransferCompleted(attestation.digest).call()

    def quote_relayer_fee(self, destination: ChainRef, token: TokenRef) -> int:
        if self.relayer is None:
            raise ChainEndpointError(f"No token bridge relayer configured for {self.chain}")

        token_address = self._local_token_address(token)
        decimals = self._erc20(token_address).functions.decimals().call()
        return self.relayer.functions.calculateRelayerFee(destination.wormhole_chain_id, token_address, decimals).call()

    def create_attestation(self, token: TokenRef, payer: str) -> list[UnsignedTransaction]:
        token_address = self._local_token_address(token)
        func = self.token_bridge.functions.attestToken(token_address, WORMHOLE_NONCE)
        return [self._build(func, payer, f"TokenBridge.attestToken({token_address})", value=self.get_message_fee())]

    def initiate_transfer(self, intent: TransferIntent) -> list[UnsignedTransaction]:
        if intent.delivery_mode == DeliveryMode.manual:
            return self._initiate_manual_transfer(intent)
        elif intent.delivery_mode == DeliveryMode.automatic:
            return self._initiate_relayed_transfer(intent)
        else:
            raise ChainEndpointError(f"EVM backend cannot build {intent.delivery_mode.value} delivery transfers")

    def _initiate_manual_transfer(self, intent: TransferIntent) -> list[UnsignedTransaction]:
        recipient_chain = intent.destination_chain.wormhole_chain_id
        recipient = to_universal_address(intent.destination_address)
        fee = self.get_message_fee()
        sender = intent.source_address

        if intent.token.is_native:
            if intent.payload:
                func = self.token_bridge.functions.wrapAndTransferETHWithPayload(recipient_chain, recipient, WORMHOLE_NONCE, intent.payload)
            else:
                func = self.token_bridge.functions.wrapAndTransferETH(recipient_chain, recipient, 0, WORMHOLE_NONCE)
            return [self._build(func, sender, "TokenBridge.wrapAndTransferETH", value=intent.amount + fee)]

        token_address = to_checksum_address(intent.token.address)
        txs = self._approve_if_needed(token_address, sender, self.token_bridge.address, intent.amount)

        if intent.payload:
            func = self.token_bridge.functions.transferTokensWithPayload(token_address, intent.amount, recipient_chain, recipient, WORMHOLE_NONCE, intent.payload)
        else:
            func = self.token_bridge.functions.transferTokens(token_address, intent.amount, recipient_chain, recipient, 0, WORMHOLE_NONCE)

        txs.append(self._build(func, sender, f"TokenBridge.transferTokens({token_address})", value=fee))
        return txs

    def _initiate_relayed_transfer(self, intent: TransferIntent) -> list[UnsignedTransaction]:
        if self.relayer is None:
            raise ChainEndpointError(f"Automatic delivery needs a token bridge relayer on {self.chain}")

        if intent.payload:
            raise ChainEndpointError("Token bridge relayer does not carry custom payloads")

        target_chain = intent.destination_chain.wormhole_chain_id
        recipient = to_universal_address(intent.destination_address)
        native_gas = intent.native_gas or 0
        fee = self.get_message_fee()
        sender = intent.source_address

        if intent.token.is_native:
            func = self.relayer.functions.wrapAndTransferEthWithRelay(native_gas, target_chain, recipient, WORMHOLE_NONCE)
            return [self._build(func, sender, "TokenBridgeRelayer.wrapAndTransferEthWithRelay", value=intent.amount + fee)]

        token_address = to_checksum_address(intent.token.address)
        txs = self._approve_if_needed(token_address, sender, self.relayer.address, intent.amount)
        func = self.relayer.functions.transferTokensWithRelay(token_address, intent.amount, native_gas, target_chain, recipient, WORMHOLE_NONCE)
        txs.append(self._build(func, sender, f"TokenBridgeRelayer.transferTokensWithRelay({token_address})", value=fee))
        return txs

    def submit_attestation(self, attestation: Attestation, payer: str) -> list[UnsignedTransaction]:
        func = self.token_bridge.functions.createWrapped(attestation.vaa_bytes)
        return [self._build(func, payer, f"TokenBridge.createWrapped({attestation.message_id})")]

    def redeem(self, attestation: Attestation, payer: str) -> list[UnsignedTransaction]:
        body = attestation.body
        assert isinstance(body, TransferBody), f"Cannot redeem {attestation.kind.value} attestation {attestation.message_id}"

        if body.payload_id == PAYLOAD_TRANSFER_WITH_PAYLOAD:
            func = self.token_bridge.functions.completeTransferWithPayload(attestation.vaa_bytes)
        else:
            func = self.token_bridge.functions.completeTransfer(attestation.vaa_bytes)

        return [self._build(func, payer, f"TokenBridge.completeTransfer({attestation.message_id})")]


class EvmSigner:
    """Sign EVM transactions with a local private key.

    Keeps a local nonce counter so several transactions can be signed
    before the first one is mined, e.g. ``approve()`` followed by ``transferTokens()``.
    The counter is read from the chain on first use and again after
    :py:meth:`reset`, which :py:func:`~wormhole_bridge.endpoint.sign_and_submit`
    calls when a submission fails.
    """

    def __init__(self, chain: ChainRef, web3: Web3, account: LocalAccount):
        self.chain = chain
        self.web3 = web3
        self.account = account
        self.current_nonce: int | None = None
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"<EvmSigner {self.account.address} on {self.chain}>"

    def address(self) -> str:
        return self.account.address

    def _read_nonce(self):
        # Caller holds the lock
        self.current_nonce = self.web3.eth.get_transaction_count(self.account.address, "pending")
        logger.debug("Synced nonce of %s on %s: %d", self.account.address, self.chain, self.current_nonce)

    def reset(self):
        """Drop the local nonce counter, the next transaction re-reads it from the chain."""
        with self._lock:
            self.current_nonce = None

    def allocate_nonce(self) -> int:
        """Take the next nonce for a new transaction."""
        with self._lock:
            if self.current_nonce is None:
                self._read_nonce()
            nonce = self.current_nonce
            self.current_nonce += 1
            return nonce

    def sign(self, unsigned_tx: UnsignedTransaction) -> bytes:
        assert unsigned_tx.chain == self.chain, f"Transaction is for {unsigned_tx.chain}, signer for {self.chain}"
        tx = dict(unsigned_tx.data)
        tx["nonce"] = self.allocate_nonce()
        tx.pop("from", None)
        signed = self.account.sign_transaction(tx)
        return bytes(signed.raw_transaction)


def create_evm_endpoint(chain: ChainRef, config: ChainConfig) -> EvmChainEndpoint:
    return EvmChainEndpoint(chain, config)


def create_evm_signer(chain: ChainRef, config: ChainConfig, private_key: str) -> EvmSigner:
    return EvmSigner(chain, create_web3(config.rpc_url), Account.from_key(private_key))
