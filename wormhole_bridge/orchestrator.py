"""Cross-chain transfer orchestration.

Drives one asset registration or token transfer from the source chain
submission through the guardian attestation to completion on the destination chain.

A run moves through :py:class:`~wormhole_bridge.models.TransferState`::

    created → source_submitted → attestation_pending → attestation_received
        → destination_submitted → completed

and drops into ``failed`` from any of them. :py:meth:`TransferOrchestrator.execute`
never raises for chain, signer or API errors: they come back as a
:py:class:`~wormhole_bridge.models.TransferFailure` with a
:py:attr:`~wormhole_bridge.models.TransferFailure.resume_point`.

Only polling is retried. A rejected submission is terminal, as resubmitting
could duplicate on-chain effects.

Example::

    from wormhole_bridge.config import load_config_from_env
    from wormhole_bridge.models import TransferIntent
    from wormhole_bridge.orchestrator import TransferOrchestrator

    config = load_config_from_env()
    orchestrator = TransferOrchestrator.from_config(config, private_keys={"Sepolia": ..., "BaseSepolia": ...})

    result = orchestrator.execute(intent)
    if not result.ok and result.kind.is_resumable:
        # Guardians were slow, keep waiting without resubmitting
        result = orchestrator.execute(intent, resume_from=result.resume_point)
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import replace
from typing import Callable, Mapping

from tqdm_loggable.auto import tqdm

from wormhole_bridge.attestation import AttestationService, AttestationTimeout, WormholescanAttestationSource
from wormhole_bridge.chain import ChainRef, TokenRef
from wormhole_bridge.config import BridgeConfig
from wormhole_bridge.endpoint import (
    ChainEndpoint,
    ChainEndpointError,
    Signer,
    SubmissionFailed,
    create_chain_endpoint,
    create_signer,
    sign_and_submit,
)
from wormhole_bridge.executor import (
    DeliveryTimeout,
    ExecutorApiClient,
    ExecutorDeliveryFailed,
    ExecutorStatusSource,
    wait_for_executor_delivery,
)
from wormhole_bridge.models import (
    AssetRegistrationIntent,
    Attestation,
    AttestationKind,
    AttestationRequest,
    BridgeIntent,
    BridgeResult,
    DeliveryMode,
    FailureKind,
    MessageId,
    RecoveredTransfer,
    ResumePoint,
    TransferFailure,
    TransferIntent,
    TransferQuote,
    TransferReceipt,
    TransferState,
)
from wormhole_bridge.resolver import WrappedAssetResolver, WrappedAssetTimeout
from wormhole_bridge.retry import PollingPolicy, poll_until
from wormhole_bridge.session import create_wormholescan_session
from wormhole_bridge.vaa import AssetMetaBody, TransferBody

logger = logging.getLogger(__name__)

#: ``(intent, new_state)`` callback
StateChangeCallback = Callable[[BridgeIntent, TransferState], None]

#: States a successful run can pass through, used for progress bars
_PROGRESS_STATES = [s for s in TransferState if s != TransferState.failed]


class _StepFailure(Exception):
    """Raised inside a run to abort it with a classified failure."""

    def __init__(self, kind: FailureKind, detail: str):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail


class _TransferRun:
    """Mutable state of one :py:meth:`TransferOrchestrator.execute` call.

    Owned by a single thread.
    """

    def __init__(self, intent: BridgeIntent, listeners: list[StateChangeCallback]):
        self.intent = intent
        self.listeners = listeners
        self.states: list[TransferState] = [TransferState.created]
        self.source_txids: tuple[str, ...] = ()
        self.message_id: MessageId | None = None
        self.attestation: Attestation | None = None
        self.destination_txids: tuple[str, ...] = ()
        self.already_completed = False
        self.wrapped_asset: str | None = None
        self.quote: TransferQuote | None = None

    @property
    def state(self) -> TransferState:
        return self.states[-1]

    def _notify(self, state: TransferState):
        for listener in self.listeners:
            listener(self.intent, state)

    def advance(self, state: TransferState):
        """Move forward. Moving to the current or an earlier state is a no-op."""
        assert not self.state.is_terminal, f"Run already ended in {self.state.value}"
        assert state != TransferState.failed, "Use fail()"
        if state.ordinal <= self.state.ordinal:
            return
        logger.info("%s: %s → %s", _describe(self.intent), self.state.value, state.value)
        self.states.append(state)
        self._notify(state)

    def resume(self, resume_point: ResumePoint):
        self.source_txids = resume_point.source_txids
        self.message_id = resume_point.message_id
        self.attestation = resume_point.attestation
        self.destination_txids = resume_point.destination_txids
        if resume_point.attestation is not None and self.message_id is None:
            self.message_id = resume_point.attestation.message_id
        logger.info("%s: resuming from %s", _describe(self.intent), resume_point.state.value)
        self.advance(resume_point.state)

    def complete(self) -> TransferReceipt:
        self.advance(TransferState.completed)
        return TransferReceipt(
            intent=self.intent,
            states=self.states,
            source_txids=self.source_txids,
            message_id=self.message_id,
            attestation=self.attestation,
            destination_txids=self.destination_txids,
            already_completed=self.already_completed,
            wrapped_asset=self.wrapped_asset,
            quote=self.quote,
        )

    def fail(self, kind: FailureKind, detail: str) -> TransferFailure:
        last_state = self.state
        logger.warning("%s: failed at %s with %s: %s", _describe(self.intent), last_state.value, kind.value, detail)
        self.states.append(TransferState.failed)
        self._notify(TransferState.failed)
        return TransferFailure(
            intent=self.intent,
            kind=kind,
            last_state=last_state,
            states=self.states,
            detail=detail,
            source_txids=self.source_txids,
            message_id=self.message_id,
            attestation=self.attestation,
            destination_txids=self.destination_txids,
            quote=self.quote,
        )


def _describe(intent: BridgeIntent) -> str:
    if isinstance(intent, AssetRegistrationIntent):
        return f"Registration of {intent.token} on {intent.destination_chain}"
    return f"Transfer of {intent.amount} {intent.token.address} {intent.source_chain.name} → {intent.destination_chain.name}"


def _step(kind: FailureKind, description: str, func: Callable):
    """Call a collaborator, classifying any exception as ``kind``."""
    try:
        return func()
    except _StepFailure:
        raise
    except Exception as e:
        logger.warning("%s failed: %s", description, e, exc_info=True)
        raise _StepFailure(kind, f"{description}: {e}") from e


class TransferOrchestrator:
    """Drive bridge operations end to end.

    Independent runs may execute concurrently, see :py:meth:`execute_many`.
    The collaborators are shared between runs.

    :param endpoints:
        Chain endpoints by chain. Must contain every source and destination chain used.

    :param signers:
        Signers by chain. The source chain signer submits the source transaction,
        the destination chain signer redeems manual transfers and creates wrapped assets.

    :param attestation_service:
        Guardian VAA lookup and wait.

    :param resolver:
        Wrapped asset lookup. Created from ``endpoints`` if not given.

    :param executor_source:
        Executor status API, needed for executor delivery.

    :param delivery_policy:
        Wait for relayer redemption and wrapped asset creation.

    :param executor_policy:
        Executor status sub-loop. 5 attempts at 5 seconds by default.

    :param on_state_change:
        Optional callback receiving ``(intent, state)`` on every state transition.
    """

    def __init__(
        self,
        endpoints: Mapping[ChainRef, ChainEndpoint],
        signers: Mapping[ChainRef, Signer],
        attestation_service: AttestationService,
        resolver: WrappedAssetResolver | None = None,
        executor_source: ExecutorStatusSource | None = None,
        delivery_policy: PollingPolicy | None = None,
        executor_policy: PollingPolicy | None = None,
        on_state_change: StateChangeCallback | None = None,
    ):
        self.endpoints = endpoints
        self.signers = signers
        self.attestation_service = attestation_service
        self.resolver = resolver or WrappedAssetResolver(endpoints, clock=attestation_service.clock, sleep=attestation_service.sleep)
        self.executor_source = executor_source
        self.delivery_policy = delivery_policy or PollingPolicy()
        self.executor_policy = executor_policy or PollingPolicy.executor_status()
        self.on_state_change = on_state_change

    @classmethod
    def from_config(
        cls,
        config: BridgeConfig,
        private_keys: Mapping[str, str] | None = None,
        signers: Mapping[ChainRef, Signer] | None = None,
        on_state_change: StateChangeCallback | None = None,
    ) -> "TransferOrchestrator":
        """Wire up an orchestrator with backends picked by chain platform.

        :param private_keys:
            Chain name → private key, for chains whose backend creates signers.

        :param signers:
            Ready-made signers, taking precedence over ``private_keys``.
        """
        endpoints = {chain: create_chain_endpoint(chain, config.get_chain_config(chain)) for chain in config.chain_refs}

        all_signers: dict[ChainRef, Signer] = {}
        for name, private_key in (private_keys or {}).items():
            chain = config.chain(name)
            all_signers[chain] = create_signer(chain, config.get_chain_config(chain), private_key)
        all_signers.update(signers or {})

        attestation_service = AttestationService(
            WormholescanAttestationSource(create_wormholescan_session(api_url=config.wormholescan_api_url)),
            policy=config.attestation_policy,
        )
        executor_source = ExecutorApiClient(create_wormholescan_session(api_url=config.executor_api_url))

        return cls(
            endpoints=endpoints,
            signers=all_signers,
            attestation_service=attestation_service,
            executor_source=executor_source,
            delivery_policy=config.delivery_policy,
            executor_policy=config.executor_policy,
            on_state_change=on_state_change,
        )

    def get_endpoint(self, chain: ChainRef) -> ChainEndpoint:
        endpoint = self.endpoints.get(chain)
        if endpoint is None:
            raise ValueError(f"No chain endpoint for {chain}")
        return endpoint

    def get_signer(self, chain: ChainRef) -> Signer:
        signer = self.signers.get(chain)
        if signer is None:
            raise ValueError(f"No signer for {chain}")
        return signer

    def resolve_wrapped_asset(self, token: TokenRef, destination: ChainRef) -> str | None:
        """Local address of ``token`` on ``destination``, ``None`` if not registered."""
        return self.resolver.resolve(token, destination)

    def _validate(self, intent: BridgeIntent, resume_from: ResumePoint | None):
        """Argument checks, done before any network interaction."""
        if not isinstance(intent, (TransferIntent, AssetRegistrationIntent)):
            raise ValueError(f"Unknown intent: {intent!r}")

        self.get_endpoint(intent.destination_chain)

        # With the message id known, the source chain is not touched again
        source_done = resume_from is not None and bool(resume_from.source_txids or resume_from.message_id or resume_from.attestation)
        if not source_done:
            self.get_endpoint(intent.source_chain)
            self.get_signer(intent.source_chain)
        elif not (resume_from.message_id or resume_from.attestation):
            self.get_endpoint(intent.source_chain)

        needs_destination_signer = isinstance(intent, AssetRegistrationIntent) or intent.delivery_mode == DeliveryMode.manual
        if needs_destination_signer:
            self.get_signer(intent.destination_chain)

        if isinstance(intent, TransferIntent) and intent.delivery_mode == DeliveryMode.executor:
            if self.executor_source is None:
                raise ValueError("Executor delivery needs an executor status source")
            if resume_from is not None and not resume_from.source_txids and (resume_from.message_id or resume_from.attestation):
                raise ValueError("Resuming an executor delivery needs the source transaction id")

        if resume_from is not None:
            resume_from.validate()
            if resume_from.attestation is not None and resume_from.attestation.kind != intent.kind:
                raise ValueError(f"Resume attestation is {resume_from.attestation.kind.value}, intent needs {intent.kind.value}")

    def execute(self, intent: BridgeIntent, resume_from: ResumePoint | None = None) -> BridgeResult:
        """Run one bridge operation to completion or failure.

        :param intent:
            :py:class:`TransferIntent` or :py:class:`AssetRegistrationIntent`.

        :param resume_from:
            Artifacts of an earlier run. Steps whose artifact is known are skipped.

        :return:
            :py:class:`TransferReceipt` or :py:class:`TransferFailure`.

        :raise ValueError:
            Invalid intent or resume point, or missing endpoint or signer.
        """
        return self._execute(intent, resume_from, listeners=[])

    def _execute(self, intent: BridgeIntent, resume_from: ResumePoint | None, listeners: list[StateChangeCallback]) -> BridgeResult:
        self._validate(intent, resume_from)

        if self.on_state_change is not None:
            listeners = [self.on_state_change] + listeners

        run = _TransferRun(intent, listeners)
        logger.info("%s: starting", _describe(intent))

        try:
            if resume_from is not None:
                run.resume(resume_from)

            if isinstance(intent, AssetRegistrationIntent):
                self._register_asset(run)
            else:
                self._transfer(run)
        except _StepFailure as e:
            return run.fail(e.kind, e.detail)
        except Exception as e:
            logger.error("%s: unexpected error at %s", _describe(intent), run.state.value, exc_info=True)
            return run.fail(FailureKind.unexpected_error, f"{e.__class__.__name__}: {e}")

        receipt = run.complete()
        logger.info(
            "%s: completed%s, source %s, destination %s",
            _describe(intent),
            " (already done)" if receipt.already_completed else "",
            ", ".join(receipt.source_txids) or "-",
            ", ".join(receipt.destination_txids) or "-",
        )
        return receipt

    def _submit(self, chain: ChainRef, build: Callable, description: str, source_run: _TransferRun | None = None) -> tuple[str, ...]:
        """Build, sign and submit the transactions of one step.

        :param source_run:
            Set for source chain steps. Transactions broadcast before a failure
            are kept on it as source transactions, so a resume does not sign them again.
            Destination steps need no such care: the destination chain
            refuses to consume a VAA twice.
        """
        endpoint = self.get_endpoint(chain)
        signer = self.get_signer(chain)
        unsigned_txs = _step(FailureKind.submission_rejected, f"Building {description}", build)

        try:
            txids = sign_and_submit(endpoint, signer, unsigned_txs)
        except SubmissionFailed as e:
            logger.warning("Submitting %s failed: %s", description, e, exc_info=True)
            kind = FailureKind.submission_rejected
            if source_run is not None and e.txids:
                source_run.source_txids = e.txids
                source_run.advance(TransferState.source_submitted)
                if not e.confirmed:
                    # The message may still land, look for it on resume
                    kind = FailureKind.message_unavailable
            raise _StepFailure(kind, f"Submitting {description}: {e}") from e
        except Exception as e:
            logger.warning("Submitting %s failed: %s", description, e, exc_info=True)
            raise _StepFailure(FailureKind.submission_rejected, f"Submitting {description}: {e}") from e

        return tuple(txids)

    def _source_done(self, run: _TransferRun) -> bool:
        return bool(run.source_txids or run.message_id)

    def _wait_attestation(self, run: _TransferRun):
        """Find the message id and wait for its VAA."""
        intent = run.intent
        run.advance(TransferState.source_submitted)

        if run.attestation is not None:
            run.advance(TransferState.attestation_received)
            return

        if run.message_id is None:
            source = self.get_endpoint(intent.source_chain)
            messages = []
            for txid in reversed(run.source_txids):
                messages = _step(FailureKind.message_unavailable, f"Reading Wormhole message from {txid}", lambda: source.parse_transaction(txid))
                if messages:
                    break

            if not messages:
                raise _StepFailure(FailureKind.message_unavailable, f"No Wormhole message in {', '.join(run.source_txids)}")

            run.message_id = messages[0]
            logger.info("%s: Wormhole message %s", _describe(intent), run.message_id)

        run.advance(TransferState.attestation_pending)

        request = AttestationRequest(source_chain=intent.source_chain, message_id=run.message_id, kind=intent.kind)
        try:
            run.attestation = self.attestation_service.wait(request)
        except AttestationTimeout as e:
            raise _StepFailure(FailureKind.attestation_timeout, str(e)) from e
        except Exception as e:
            logger.warning("Attestation wait for %s failed", run.message_id, exc_info=True)
            raise _StepFailure(FailureKind.attestation_timeout, f"Attestation wait failed: {e}") from e

        run.advance(TransferState.attestation_received)

    def _register_asset(self, run: _TransferRun):
        intent: AssetRegistrationIntent = run.intent

        if not self._source_done(run):
            wrapped = self.resolver.resolve(intent.token, intent.destination_chain)
            if wrapped is not None:
                logger.info("%s: already registered as %s", _describe(intent), wrapped)
                run.wrapped_asset = wrapped
                run.already_completed = True
                return

            source = self.get_endpoint(intent.source_chain)
            payer = self.get_signer(intent.source_chain).address()
            run.source_txids = self._submit(
                intent.source_chain,
                lambda: source.create_attestation(intent.token, payer),
                f"asset attestation of {intent.token}",
                source_run=run,
            )

        self._wait_attestation(run)

        if not run.destination_txids:
            wrapped = self.resolver.resolve(intent.token, intent.destination_chain)
            if wrapped is not None:
                logger.info("%s: registered by someone else as %s", _describe(intent), wrapped)
                run.wrapped_asset = wrapped
                run.already_completed = True
                return

            destination = self.get_endpoint(intent.destination_chain)
            payer = self.get_signer(intent.destination_chain).address()
            run.destination_txids = self._submit(
                intent.destination_chain,
                lambda: destination.submit_attestation(run.attestation, payer),
                f"wrapped asset creation for {intent.token}",
            )

        run.advance(TransferState.destination_submitted)

        try:
            run.wrapped_asset = self.resolver.wait_for_wrapped_asset(intent.token, intent.destination_chain, self.delivery_policy)
        except WrappedAssetTimeout as e:
            raise _StepFailure(FailureKind.delivery_timeout, str(e)) from e

    def _check_balance(self, intent: TransferIntent):
        source = self.get_endpoint(intent.source_chain)
        balance = _step(
            FailureKind.insufficient_balance,
            f"Reading balance of {intent.source_address}",
            lambda: source.get_balance(intent.source_address, intent.token),
        )

        if balance is None:
            raise _StepFailure(FailureKind.insufficient_balance, f"No balance for {intent.token} at {intent.source_address}")

        if balance < intent.amount:
            raise _StepFailure(FailureKind.insufficient_balance, f"Balance {balance} of {intent.source_address} is less than {intent.amount}")

    def _quote(self, run: _TransferRun):
        """Quote the relayer fee. The quote is kept on the run even when it is refused."""
        intent: TransferIntent = run.intent
        source = self.get_endpoint(intent.source_chain)
        relayer_fee = _step(
            FailureKind.quote_unavailable,
            f"Quoting relayer fee to {intent.destination_chain}",
            lambda: source.quote_relayer_fee(intent.destination_chain, intent.token),
        )

        quote = TransferQuote(amount=intent.amount, relayer_fee=relayer_fee, native_gas=intent.native_gas or 0)
        run.quote = quote
        logger.info("%s: relayer fee %d, native gas %d, recipient gets %d", _describe(intent), quote.relayer_fee, quote.native_gas, quote.destination_amount)

        if quote.destination_amount <= 0:
            raise _StepFailure(
                FailureKind.fee_too_low,
                f"Amount {intent.amount} does not cover relayer fee {quote.relayer_fee} and native gas {quote.native_gas}",
            )

    def _transfer(self, run: _TransferRun):
        intent: TransferIntent = run.intent

        if not self._source_done(run):
            self._check_balance(intent)

            if intent.delivery_mode != DeliveryMode.manual:
                self._quote(run)

            source = self.get_endpoint(intent.source_chain)
            run.source_txids = self._submit(
                intent.source_chain,
                lambda: source.initiate_transfer(intent),
                f"transfer of {intent.amount} {intent.token.address}",
                source_run=run,
            )

        self._wait_attestation(run)

        if intent.delivery_mode == DeliveryMode.manual:
            self._redeem(run)
        elif intent.delivery_mode == DeliveryMode.automatic:
            self._wait_relayer(run)
        else:
            self._wait_executor(run)

    def _redeem(self, run: _TransferRun):
        intent: TransferIntent = run.intent
        destination = self.get_endpoint(intent.destination_chain)

        if not run.destination_txids:
            try:
                completed = destination.is_transfer_completed(run.attestation)
            except Exception as e:
                logger.warning("Could not check redemption of %s, redeeming: %s", run.message_id, e, exc_info=True)
                completed = False

            if completed:
                logger.info("%s: already redeemed", _describe(intent))
                run.already_completed = True
                return

            payer = self.get_signer(intent.destination_chain).address()
            run.destination_txids = self._submit(
                intent.destination_chain,
                lambda: destination.redeem(run.attestation, payer),
                f"redemption of {run.message_id}",
            )

        run.advance(TransferState.destination_submitted)

    def _wait_relayer(self, run: _TransferRun):
        intent: TransferIntent = run.intent
        destination = self.get_endpoint(intent.destination_chain)

        try:
            poll_until(
                lambda: destination.is_transfer_completed(run.attestation) or None,
                self.delivery_policy,
                description=f"relayer redemption of {run.message_id} on {intent.destination_chain}",
                exception_class=DeliveryTimeout,
                clock=self.attestation_service.clock,
                sleep=self.attestation_service.sleep,
            )
        except DeliveryTimeout as e:
            raise _StepFailure(FailureKind.delivery_timeout, str(e)) from e

    def _wait_executor(self, run: _TransferRun):
        intent: TransferIntent = run.intent
        txid = run.source_txids[-1]

        try:
            destination_txids = wait_for_executor_delivery(
                self.executor_source,
                intent.source_chain,
                txid,
                policy=self.executor_policy,
                clock=self.attestation_service.clock,
                sleep=self.attestation_service.sleep,
            )
        except DeliveryTimeout as e:
            raise _StepFailure(FailureKind.delivery_timeout, str(e)) from e
        except ExecutorDeliveryFailed as e:
            raise _StepFailure(FailureKind.submission_rejected, str(e)) from e

        run.destination_txids = tuple(destination_txids)
        run.advance(TransferState.destination_submitted)

    def recover(self, source_chain: ChainRef, txid: str) -> RecoveredTransfer:
        """Rebuild what is known about a bridge operation from its source transaction.

        Use the returned :py:attr:`~wormhole_bridge.models.RecoveredTransfer.resume_point`
        with :py:meth:`execute` to finish it.

        :raise ChainEndpointError:
            The transaction published no Wormhole message.
        """
        endpoint = self.get_endpoint(source_chain)
        messages = endpoint.parse_transaction(txid)
        if not messages:
            raise ChainEndpointError(f"No Wormhole message in {txid} on {source_chain}")
        message_id = messages[0]

        logger.info("Recovering %s on %s: message %s", txid, source_chain, message_id)

        recovered = RecoveredTransfer(source_chain=source_chain, source_txid=txid, message_id=message_id)

        request = AttestationRequest(source_chain=source_chain, message_id=message_id, kind=AttestationKind.transfer)
        try:
            attestation = self.attestation_service.fetch(request)
        except Exception as e:
            logger.warning("Could not fetch attestation for %s: %s", message_id, e, exc_info=True)
            attestation = None

        if attestation is None:
            logger.info("Message %s is not attested yet", message_id)
            return recovered

        try:
            body = attestation.body
        except ValueError as e:
            logger.warning("Message %s is not a token bridge payload: %s", message_id, e)
            recovered.attestation = attestation
            return recovered

        if isinstance(body, AssetMetaBody):
            attestation = replace(attestation, kind=AttestationKind.asset_metadata)

        recovered.attestation = attestation
        recovered.body = body

        if isinstance(body, TransferBody):
            try:
                recovered.destination_chain = ChainRef.from_wormhole_chain_id(source_chain.network, body.recipient_chain)
            except ValueError:
                logger.warning("Unknown destination chain id %d in %s", body.recipient_chain, message_id)

        destination = self.endpoints.get(recovered.destination_chain) if recovered.destination_chain else None
        if destination is not None:
            try:
                recovered.completed = destination.is_transfer_completed(attestation)
            except Exception as e:
                logger.warning("Could not check redemption of %s: %s", message_id, e, exc_info=True)

        return recovered

    def execute_many(
        self,
        intents: list[BridgeIntent],
        max_workers: int | None = None,
        progress: bool = True,
    ) -> list[BridgeResult]:
        """Run independent bridge operations in parallel.

        Each intent gets its own run and state. Attestation waits dominate the
        wall-clock time, so running N transfers takes roughly as long as one.

        When *progress* is ``True``, shows a ``tqdm`` progress bar advancing by
        state transitions.

        :param intents:
            Independent intents. Intents signing on the same chain share the
            signer, whose nonce handling must be thread-safe.

        :param max_workers:
            Maximum parallel threads. Defaults to the number of intents.

        :return:
            Results in the same order as ``intents``.
            A run that hits an unexpected error comes back as a
            :py:attr:`~wormhole_bridge.models.FailureKind.unexpected_error` failure,
            the other runs carry on.
        """
        if not intents:
            return []

        for intent in intents:
            self._validate(intent, None)

        n = len(intents)
        max_workers = max_workers or n
        n_steps = len(_PROGRESS_STATES) - 1
        ordinals = [0] * n
        lock = threading.Lock()

        progress_bar = tqdm(
            total=n * n_steps,
            desc="Wormhole bridge",
            unit="state",
            disable=not progress,
        )

        def _update(idx: int, state: TransferState):
            with lock:
                new_ordinal = n_steps if state.is_terminal else state.ordinal
                advance = max(0, new_ordinal - ordinals[idx])
                ordinals[idx] = max(ordinals[idx], new_ordinal)
                if advance:
                    progress_bar.update(advance)
                done = sum(1 for o in ordinals if o == n_steps)
                progress_bar.set_postfix_str(f"done: {done}/{n}")

        def _run(idx: int, intent: BridgeIntent) -> BridgeResult:
            threading.current_thread().name = f"wormhole-{idx}-{intent.destination_chain.name}"
            return self._execute(intent, None, listeners=[lambda _intent, state: _update(idx, state)])

        results: dict[int, BridgeResult] = {}
        try:
            with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="wormhole") as executor:
                futures = {executor.submit(_run, idx, intent): idx for idx, intent in enumerate(intents)}
                for future in as_completed(futures):
                    results[futures[future]] = future.result()
        finally:
            progress_bar.close()

        failed = sum(1 for r in results.values() if not r.ok)
        logger.info("Bridged %d operations, %d failed", n, failed)
        return [results[i] for i in range(n)]
