"""Chain capability interfaces.

The orchestrator talks to chains only through :py:class:`ChainEndpoint`
and :py:class:`Signer`. A backend implements both for one platform
(EVM, Solana, ...) and is picked by the chain's platform tag through
:py:func:`create_chain_endpoint`.

- Read methods re-query the chain on every call, nothing is cached
- Builder methods return unsigned transactions, one operation may need
  several (e.g. ERC-20 ``approve()`` followed by ``transferTokens()``)
- :py:meth:`ChainEndpoint.submit` broadcasts signed bytes and waits
  for inclusion
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, runtime_checkable

from wormhole_bridge.chain import ChainRef, TokenRef
from wormhole_bridge.config import ChainConfig
from wormhole_bridge.models import Attestation, MessageId, TransferIntent

logger = logging.getLogger(__name__)


class ChainEndpointError(Exception):
    """A chain read or transaction build failed."""


class TransactionRejected(ChainEndpointError):
    """A signed transaction was refused by the node or reverted on chain."""

    def __init__(self, message: str, txid: str | None = None):
        super().__init__(message)

        #: Transaction hash, if the transaction made it into a block
        self.txid = txid


class TransactionNotConfirmed(ChainEndpointError):
    """A transaction was broadcast but did not land within the confirmation timeout.

    It may still be mined later.
    """

    def __init__(self, message: str, txid: str):
        super().__init__(message)
        self.txid = txid


class SubmissionFailed(ChainEndpointError):
    """A transaction of a :py:func:`sign_and_submit` batch failed.

    Carries the transactions already broadcast, so resuming the operation
    does not sign them again.
    """

    def __init__(self, message: str, txids: tuple[str, ...], confirmed: bool):
        super().__init__(message)

        #: Broadcast transaction ids, including the failed transaction if it got one
        self.txids = txids

        #: ``False`` when the failed transaction may still land
        self.confirmed = confirmed


@dataclass(slots=True)
class UnsignedTransaction:
    """A transaction built by a :py:class:`ChainEndpoint`, waiting for a :py:class:`Signer`."""

    #: Chain the transaction is for
    chain: ChainRef

    #: Human-readable label for logs, e.g. ``"TokenBridge.transferTokens"``
    description: str

    #: Backend-specific transaction data, e.g. an EVM transaction dict
    data: Any

    def __repr__(self) -> str:
        return f"<UnsignedTransaction {self.description} on {self.chain}>"


@runtime_checkable
class ChainEndpoint(Protocol):
    """Handle to one chain's RPC and Wormhole contracts."""

    chain: ChainRef

    def get_balance(self, address: str, token: TokenRef) -> int | None:
        """Token balance in smallest units, ``None`` if the token does not exist on this chain."""

    def submit(self, signed_tx: bytes) -> list[str]:
        """Broadcast a signed transaction and wait for it to land.

        :return:
            Transaction ids.

        :raise TransactionRejected:
            Refused or reverted.
        """

    def parse_transaction(self, txid: str) -> list[MessageId]:
        """Wormhole messages emitted by a transaction."""

    def get_wrapped_asset(self, token: TokenRef) -> str | None:
        """Local address of ``token``, ``None`` if it is not registered here.

        ``token`` is the origin token on its native chain.
        """

    def get_native_wrapped_token(self) -> str:
        """Address of the wrapped native gas token the token bridge uses, e.g. WETH."""

    def is_transfer_completed(self, attestation: Attestation) -> bool:
        """Has the token bridge on this chain already consumed the VAA."""

    def quote_relayer_fee(self, destination: ChainRef, token: TokenRef) -> int:
        """Relayer fee in token units for delivering ``token`` to ``destination``."""

    def create_attestation(self, token: TokenRef, payer: str) -> list[UnsignedTransaction]:
        """Build the asset metadata attestation for a token native to this chain."""

    def initiate_transfer(self, intent: TransferIntent) -> list[UnsignedTransaction]:
        """Build the transactions that lock or burn tokens for a transfer."""

    def submit_attestation(self, attestation: Attestation, payer: str) -> list[UnsignedTransaction]:
        """Build the wrapped asset creation from an asset metadata VAA."""

    def redeem(self, attestation: Attestation, payer: str) -> list[UnsignedTransaction]:
        """Build the transfer redemption from a transfer VAA."""


@runtime_checkable
class Signer(Protocol):
    """Signs transactions for one chain."""

    chain: ChainRef

    def sign(self, unsigned_tx: UnsignedTransaction) -> bytes:
        """Sign one transaction, returning the serialised bytes to broadcast."""

    def address(self) -> str:
        """Address the signer signs for."""

    def reset(self):
        """Forget local signing state after a failed submission, e.g. a cached nonce."""


def sign_and_submit(
    endpoint: ChainEndpoint,
    signer: Signer,
    unsigned_txs: list[UnsignedTransaction],
) -> list[str]:
    """Sign and submit transactions one by one, in order.

    Stops at the first failed transaction and resets the signer.

    :return:
        Transaction ids of all submitted transactions.

    :raise SubmissionFailed:
        A transaction was refused, reverted or not confirmed in time.
        Transactions broadcast before it are listed in :py:attr:`SubmissionFailed.txids`.
    """
    assert endpoint.chain == signer.chain, f"Endpoint is for {endpoint.chain}, signer for {signer.chain}"

    txids = []
    for unsigned_tx in unsigned_txs:
        logger.info("Signing %s on %s as %s", unsigned_tx.description, endpoint.chain, signer.address())
        signed = signer.sign(unsigned_tx)
        try:
            submitted = endpoint.submit(signed)
        except Exception as e:
            signer.reset()
            failed_txid = e.txid if isinstance(e, (TransactionRejected, TransactionNotConfirmed)) else None
            broadcast = tuple(txids) + ((failed_txid,) if failed_txid else ())
            raise SubmissionFailed(
                f"{unsigned_tx.description} on {endpoint.chain} failed: {e}",
                txids=broadcast,
                confirmed=not isinstance(e, (TransactionNotConfirmed, TimeoutError)),
            ) from e
        logger.info("Submitted %s on %s: %s", unsigned_tx.description, endpoint.chain, ", ".join(submitted))
        txids.extend(submitted)
    return txids


#: ``(chain, chain_config) → ChainEndpoint``
EndpointFactory = Callable[[ChainRef, ChainConfig], ChainEndpoint]

#: ``(chain, chain_config, private_key) → Signer``
SignerFactory = Callable[[ChainRef, ChainConfig, str], Signer]


@dataclass(slots=True)
class ChainBackend:
    """Endpoint and signer factories for one platform."""

    platform: str

    create_endpoint: EndpointFactory

    create_signer: SignerFactory | None = None


_backends: dict[str, ChainBackend] = {}


def register_backend(platform: str, create_endpoint: EndpointFactory, create_signer: SignerFactory | None = None):
    """Register a chain backend for a platform tag, e.g. ``"Solana"``.

    Registering the same platform again replaces the earlier backend.
    """
    if platform in _backends:
        logger.info("Replacing chain backend for %s", platform)
    _backends[platform] = ChainBackend(platform=platform, create_endpoint=create_endpoint, create_signer=create_signer)


def get_backend(platform: str) -> ChainBackend:
    """Look up the backend of a platform.

    The EVM backend is registered on first use.

    :raise NotImplementedError:
        No backend for the platform.
    """
    if platform == "Evm" and platform not in _backends:
        from wormhole_bridge.evm import create_evm_endpoint, create_evm_signer

        register_backend("Evm", create_evm_endpoint, create_evm_signer)

    backend = _backends.get(platform)
    if backend is None:
        raise NotImplementedError(f"No chain backend registered for platform {platform}, registered: {', '.join(_backends) or 'none'}")
    return backend


def create_chain_endpoint(chain: ChainRef, config: ChainConfig) -> ChainEndpoint:
    """Create an endpoint for a chain with the backend matching its platform."""
    return get_backend(chain.platform).create_endpoint(chain, config)


def create_signer(chain: ChainRef, config: ChainConfig, private_key: str) -> Signer:
    """Create a signer for a chain with the backend matching its platform."""
    backend = get_backend(chain.platform)
    if backend.create_signer is None:
        raise NotImplementedError(f"Chain backend for {chain.platform} does not create signers")
    return backend.create_signer(chain, config, private_key)
