"""Bridge operation data model.

Intents describe what the caller wants, results describe what happened.
Everything here is created by the caller or by
:py:class:`~wormhole_bridge.orchestrator.TransferOrchestrator`
and is not mutated after creation.
"""

import enum
from dataclasses import dataclass
from typing import ClassVar

from wormhole_bridge.chain import ChainRef, TokenRef
from wormhole_bridge.vaa import AssetMetaBody, ParsedVAA, TransferBody, parse_token_bridge_payload, parse_vaa


class DeliveryMode(enum.Enum):
    """Who completes a transfer on the destination chain."""

    #: We redeem the VAA ourselves with the destination signer
    manual = "manual"

    #: The token bridge relayer redeems it, paid from the transferred amount
    automatic = "automatic"

    #: A third-party executor redeems it, tracked through the Executor API
    executor = "executor"


class AttestationKind(enum.Enum):
    """Which token bridge payload the awaited VAA carries."""

    #: Asset metadata attestation, consumed by ``createWrapped()``
    asset_metadata = "TokenBridge:AttestMeta"

    #: Token transfer, consumed by ``completeTransfer()``
    transfer = "TokenBridge:Transfer"


class TransferState(enum.Enum):
    """Progress of one bridge operation.

    States are listed in the order a run moves through them.
    A run never moves backwards, except into :py:attr:`failed`.
    """

    created = "created"
    source_submitted = "source_submitted"
    attestation_pending = "attestation_pending"
    attestation_received = "attestation_received"
    destination_submitted = "destination_submitted"
    completed = "completed"

    #: Absorbing failure state, reachable from any non-terminal state
    failed = "failed"

    @property
    def ordinal(self) -> int:
        return _STATE_ORDER.index(self)

    @property
    def is_terminal(self) -> bool:
        return self in (TransferState.completed, TransferState.failed)


_STATE_ORDER = list(TransferState)


class FailureKind(enum.Enum):
    """Why a bridge operation failed."""

    #: Signer or chain rejected a transaction. Not retried, resubmitting could duplicate on-chain effects.
    submission_rejected = "submission_rejected"

    #: The source transaction landed but its Wormhole message could not be read from it
    message_unavailable = "message_unavailable"

    #: No VAA within the wait. Replay the wait later with the same message id.
    attestation_timeout = "attestation_timeout"

    #: Source address does not hold enough of the token
    insufficient_balance = "insufficient_balance"

    #: Relayer fee and native gas top-up eat the whole amount
    fee_too_low = "fee_too_low"

    #: Relayer fee could not be quoted
    quote_unavailable = "quote_unavailable"

    #: Destination side did not confirm completion in time. Replay to keep waiting.
    delivery_timeout = "delivery_timeout"

    #: Something outside the bridge steps raised, e.g. a state change callback.
    #: The artifacts gathered up to that point are kept.
    unexpected_error = "unexpected_error"

    @property
    def is_resumable(self) -> bool:
        """Whether re-running from the failure's resume point can still succeed."""
        return self in (FailureKind.attestation_timeout, FailureKind.delivery_timeout, FailureKind.message_unavailable)


@dataclass(slots=True, frozen=True)
class MessageId:
    """Wormhole message identifier: emitter chain, emitter address and sequence."""

    #: Wormhole chain ID of the emitter
    chain_id: int

    #: 32-byte emitter address, hex without ``0x``
    emitter: str

    sequence: int

    def __str__(self) -> str:
        return f"{self.chain_id}/{self.emitter}/{self.sequence}"


@dataclass(slots=True, frozen=True)
class AttestationRequest:
    """What to ask the guardian network for after a source submission."""

    source_chain: ChainRef

    message_id: MessageId

    kind: AttestationKind


@dataclass(slots=True, frozen=True)
class Attestation:
    """A guardian-signed VAA.

    Treated as opaque bytes by the orchestrator. The destination contract
    verifies the signatures; :py:meth:`parse` and :py:attr:`body` decode the
    fields for logging, idempotency checks and recovery.
    """

    kind: AttestationKind

    message_id: MessageId

    #: Serialised VAA
    vaa_bytes: bytes

    def parse(self) -> ParsedVAA:
        return parse_vaa(self.vaa_bytes)

    @property
    def body(self) -> AssetMetaBody | TransferBody:
        """Decoded token bridge payload."""
        return parse_token_bridge_payload(self.parse().payload)

    @property
    def digest(self) -> bytes:
        return self.parse().digest


@dataclass(slots=True, frozen=True)
class TransferIntent:
    """A token transfer the caller wants to make.

    ``token`` names the token as addressed on the source chain,
    so the source chain is ``token.chain``.
    """

    kind: ClassVar[AttestationKind] = AttestationKind.transfer

    #: Token on the source chain
    token: TokenRef

    #: Amount in the token's smallest unit
    amount: int

    #: Address holding the tokens on the source chain
    source_address: str

    #: Where the tokens go
    destination_chain: ChainRef

    #: Recipient on the destination chain
    destination_address: str

    delivery_mode: DeliveryMode = DeliveryMode.manual

    #: For relayed deliveries: part of the amount swapped to destination native gas, in token units
    native_gas: int | None = None

    #: Arbitrary payload for payload transfers
    payload: bytes | None = None

    def __post_init__(self):
        assert type(self.amount) == int, f"Amount must be int in smallest units, got {type(self.amount)}"
        if self.amount <= 0:
            raise ValueError(f"Transfer amount must be positive, got {self.amount}")
        if self.native_gas is not None and self.native_gas < 0:
            raise ValueError(f"Native gas top-up cannot be negative, got {self.native_gas}")
        if self.native_gas and self.delivery_mode == DeliveryMode.manual:
            raise ValueError("Native gas top-up needs a relayed delivery mode")
        if self.destination_chain == self.token.chain:
            raise ValueError(f"Source and destination chain are both {self.destination_chain}")

    @property
    def source_chain(self) -> ChainRef:
        return self.token.chain


@dataclass(slots=True, frozen=True)
class AssetRegistrationIntent:
    """Register (attest) a token on a destination chain so it can be transferred there."""

    kind: ClassVar[AttestationKind] = AttestationKind.asset_metadata

    #: Token on its native chain, or the native marker for the wrapped native token
    token: TokenRef

    #: Chain where the wrapped token is created
    destination_chain: ChainRef

    def __post_init__(self):
        if self.destination_chain == self.token.chain:
            raise ValueError(f"Token already lives on {self.destination_chain}")

    @property
    def source_chain(self) -> ChainRef:
        return self.token.chain


#: Either kind of intent the orchestrator executes
BridgeIntent = TransferIntent | AssetRegistrationIntent


@dataclass(slots=True, frozen=True)
class ResumePoint:
    """Where to pick up a previous run.

    Any step whose artifact is known is skipped:

    - ``source_txids`` skips the source submission
    - ``message_id`` skips reading the message from the source transaction
    - ``attestation`` skips the guardian wait
    - ``destination_txids`` skips the destination submission

    Get one from :py:attr:`TransferFailure.resume_point`, or build it by hand from
    a saved transaction id.
    """

    #: Last state the previous run reached
    state: TransferState

    source_txids: tuple[str, ...] = ()

    message_id: MessageId | None = None

    attestation: Attestation | None = None

    destination_txids: tuple[str, ...] = ()

    def validate(self):
        """Check the artifacts are enough to resume from :py:attr:`state`.

        :raise ValueError:
            Terminal state, or an artifact the state needs is missing.
        """
        if self.state.is_terminal:
            raise ValueError(f"Cannot resume from terminal state {self.state.value}")

        ordinal = self.state.ordinal

        if ordinal >= TransferState.source_submitted.ordinal and not (self.source_txids or self.message_id or self.attestation):
            raise ValueError(f"Resuming from {self.state.value} needs source transaction ids, a message id or the attestation")

        if ordinal >= TransferState.attestation_received.ordinal and self.attestation is None:
            raise ValueError(f"Resuming from {self.state.value} needs the attestation")


@dataclass(slots=True, frozen=True)
class TransferQuote:
    """Relayer fee quote for a relayed delivery."""

    amount: int

    #: Relayer fee in token units
    relayer_fee: int

    #: Native gas top-up in token units
    native_gas: int = 0

    @property
    def destination_amount(self) -> int:
        """What the recipient ends up with, in token units."""
        return self.amount - self.relayer_fee - self.native_gas


@dataclass(slots=True)
class TransferReceipt:
    """Result of a successful bridge operation."""

    intent: BridgeIntent

    #: States the run moved through, ending in ``completed``
    states: list[TransferState]

    source_txids: tuple[str, ...] = ()

    message_id: MessageId | None = None

    attestation: Attestation | None = None

    destination_txids: tuple[str, ...] = ()

    #: The destination was already done before we submitted anything there
    already_completed: bool = False

    #: Wrapped token address on the destination chain, for asset registrations
    wrapped_asset: str | None = None

    quote: TransferQuote | None = None

    @property
    def state(self) -> TransferState:
        return self.states[-1]

    @property
    def ok(self) -> bool:
        return True


@dataclass(slots=True)
class TransferFailure:
    """Result of a failed bridge operation.

    Carries everything needed to resume: see :py:attr:`resume_point`.
    """

    intent: BridgeIntent

    kind: FailureKind

    #: Last state reached before failing
    last_state: TransferState

    #: States the run moved through, ending in ``failed``
    states: list[TransferState]

    #: Human-readable cause
    detail: str

    source_txids: tuple[str, ...] = ()

    message_id: MessageId | None = None

    attestation: Attestation | None = None

    destination_txids: tuple[str, ...] = ()

    quote: TransferQuote | None = None

    def __str__(self) -> str:
        message = f" message {self.message_id}" if self.message_id else ""
        return f"{self.kind.value} at {self.last_state.value}{message}: {self.detail}"

    @property
    def state(self) -> TransferState:
        return TransferState.failed

    @property
    def ok(self) -> bool:
        return False

    @property
    def resume_point(self) -> ResumePoint:
        """Resume point for replaying the run from where it stopped."""
        return ResumePoint(
            state=self.last_state,
            source_txids=self.source_txids,
            message_id=self.message_id,
            attestation=self.attestation,
            destination_txids=self.destination_txids,
        )


#: What :py:meth:`~wormhole_bridge.orchestrator.TransferOrchestrator.execute` returns
BridgeResult = TransferReceipt | TransferFailure


@dataclass(slots=True)
class RecoveredTransfer:
    """What we can learn about a transfer from its source transaction id alone."""

    source_chain: ChainRef

    source_txid: str

    message_id: MessageId

    #: ``None`` if the guardians have not signed yet
    attestation: Attestation | None = None

    #: Decoded token bridge payload, if the attestation is available
    body: AssetMetaBody | TransferBody | None = None

    #: Destination chain, if it could be resolved from the payload
    destination_chain: ChainRef | None = None

    #: ``True``/``False`` if we could ask the destination, ``None`` otherwise
    completed: bool | None = None

    @property
    def resume_point(self) -> ResumePoint:
        if self.attestation is None:
            state = TransferState.attestation_pending
        else:
            state = TransferState.attestation_received

        return ResumePoint(
            state=state,
            source_txids=(self.source_txid,),
            message_id=self.message_id,
            attestation=self.attestation,
        )
