"""Bridge operation orchestration against stub chains.

These tests exercise the state machine only, no RPC or Wormholescan access.
Endpoints, signers and the attestation source are in-memory stubs and
polling runs on a fake clock.
"""

import pytest

from wormhole_bridge.attestation import AttestationService
from wormhole_bridge.chain import TokenRef
from wormhole_bridge.endpoint import ChainEndpointError, TransactionNotConfirmed, TransactionRejected
from wormhole_bridge.models import (
    AssetRegistrationIntent,
    Attestation,
    AttestationKind,
    DeliveryMode,
    FailureKind,
    MessageId,
    ResumePoint,
    TransferIntent,
    TransferState,
)
from wormhole_bridge.orchestrator import TransferOrchestrator

PENDING = [{"status": "pending", "txs": []}]
DELIVERED = [{"status": "submitted", "txs": [{"txHash": "0xdest", "chainId": 10004}]}]
ABORTED = [{"status": "aborted", "failureCause": "destination reverted"}]

MESSAGE = MessageId(chain_id=10002, emitter="00" * 12 + "db" * 20, sequence=1)

FULL_RUN = [
    TransferState.created,
    TransferState.source_submitted,
    TransferState.attestation_pending,
    TransferState.attestation_received,
    TransferState.destination_submitted,
    TransferState.completed,
]


def _transfer(token, destination_chain, wallet, amount=1_000_000, **kwargs) -> TransferIntent:
    return TransferIntent(
        token=token,
        amount=amount,
        source_address=wallet,
        destination_chain=destination_chain,
        destination_address=wallet,
        **kwargs,
    )


def _assert_monotonic(states: list[TransferState]):
    progress = [s for s in states if s != TransferState.failed]
    ordinals = [s.ordinal for s in progress]
    assert ordinals == sorted(set(ordinals)), f"States went backwards: {states}"
    assert TransferState.failed not in states[:-1]


def test_manual_transfer(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_endpoint, destination_endpoint, source_signer, destination_signer):
    """Manual 1,000,000 unit transfer goes through every state and records both sides."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert result.ok
    assert result.states == FULL_RUN
    assert result.source_txids == ("0xsepolia0001", "0xsepolia0002")
    assert result.destination_txids == ("0xbasesepolia0001",)
    assert result.message_id == MESSAGE
    assert result.attestation.vaa_bytes == transfer_vaa
    assert not result.already_completed

    # Message read from the last source transaction
    assert source_endpoint.parsed == ["0xsepolia0002"]
    assert [tx.description for tx in source_signer.signed] == ["approve", "transferTokens"]
    assert [tx.description for tx in destination_signer.signed] == ["completeTransfer"]
    assert destination_endpoint.completed_checks == 1


def test_state_change_callback(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet):
    """Every transition is reported once and in order."""
    seen = []
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), on_state_change=lambda intent, state: seen.append(state))

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert seen == FULL_RUN[1:]
    _assert_monotonic(result.states)


def test_already_redeemed(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, destination_endpoint, destination_signer):
    """A VAA consumed by someone else completes without redeeming."""
    destination_endpoint.completed_answers = [True]
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert result.ok
    assert result.already_completed
    assert result.destination_txids == ()
    assert destination_signer.signed == []


def test_registration_already_wrapped(make_orchestrator, make_attestation_source, token, destination_chain, destination_endpoint, wrapped_token, source_signer, destination_signer):
    """Registering a known token submits nothing."""
    destination_endpoint.wrapped[token] = wrapped_token
    source = make_attestation_source()
    orchestrator = make_orchestrator(source)

    result = orchestrator.execute(AssetRegistrationIntent(token=token, destination_chain=destination_chain))

    assert result.ok
    assert result.already_completed
    assert result.wrapped_asset == wrapped_token
    assert result.states == [TransferState.created, TransferState.completed]
    assert source_signer.signed == []
    assert destination_signer.signed == []
    assert source.calls == 0


def test_registration(make_orchestrator, make_attestation_source, attest_meta_vaa, token, destination_chain, destination_endpoint, wrapped_token, source_signer, destination_signer):
    """Unregistered token is attested on the source chain and created on the destination chain."""
    destination_endpoint.wrap_on_create = (token, wrapped_token)
    orchestrator = make_orchestrator(make_attestation_source(vaa=attest_meta_vaa))

    result = orchestrator.execute(AssetRegistrationIntent(token=token, destination_chain=destination_chain))

    assert result.ok
    assert result.states == FULL_RUN
    assert not result.already_completed
    assert result.wrapped_asset == wrapped_token
    assert result.attestation.kind == AttestationKind.asset_metadata
    assert result.attestation.body.symbol == "USDC"
    assert [tx.description for tx in source_signer.signed] == ["attestToken"]
    assert [tx.description for tx in destination_signer.signed] == ["createWrapped"]


def test_registration_resolver_error_attests(make_orchestrator, make_attestation_source, attest_meta_vaa, token, destination_chain, destination_endpoint, source_signer):
    """A failing wrapped asset read is treated as not registered."""
    destination_endpoint.wrapped_error = ConnectionError("RPC down")
    orchestrator = make_orchestrator(make_attestation_source(vaa=attest_meta_vaa))

    result = orchestrator.execute(AssetRegistrationIntent(token=token, destination_chain=destination_chain))

    # Attested, but the wrapped asset never becomes readable
    assert [tx.description for tx in source_signer.signed] == ["attestToken"]
    assert not result.ok
    assert result.kind == FailureKind.delivery_timeout
    assert result.last_state == TransferState.destination_submitted


def test_registration_from_message_id(
    make_attestation_source,
    attest_meta_vaa,
    token,
    destination_chain,
    destination_endpoint,
    destination_signer,
    wrapped_token,
    clock,
):
    """A signed attestation can be submitted with only the destination chain configured."""
    destination_endpoint.wrap_on_create = (token, wrapped_token)
    orchestrator = TransferOrchestrator(
        endpoints={destination_chain: destination_endpoint},
        signers={destination_chain: destination_signer},
        attestation_service=AttestationService(make_attestation_source(vaa=attest_meta_vaa), clock=clock, sleep=clock.sleep),
    )

    result = orchestrator.execute(
        AssetRegistrationIntent(token=token, destination_chain=destination_chain),
        resume_from=ResumePoint(state=TransferState.attestation_pending, message_id=MESSAGE),
    )

    assert result.ok
    assert result.wrapped_asset == wrapped_token
    assert result.states[:2] == [TransferState.created, TransferState.attestation_pending]


def test_fee_guard_never_signs(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint, source_signer):
    """Relayer fee eating the whole amount fails before anything is built or signed."""
    source_endpoint.relayer_fee = 1_000_000
    orchestrator = make_orchestrator(make_attestation_source())

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.automatic))

    assert not result.ok
    assert result.kind == FailureKind.fee_too_low
    assert result.last_state == TransferState.created
    assert result.states == [TransferState.created, TransferState.failed]
    assert result.quote.destination_amount == 0
    assert source_endpoint.built == []
    assert source_signer.signed == []


def test_native_gas_counts_against_fee(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint, source_signer):
    """Native gas top-up and relayer fee together must leave something."""
    source_endpoint.relayer_fee = 600_000
    orchestrator = make_orchestrator(make_attestation_source())

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.automatic, native_gas=400_000))

    assert result.kind == FailureKind.fee_too_low
    assert source_signer.signed == []


def test_quote_unavailable(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint, source_signer):
    """A failing fee quote fails the run before signing."""
    source_endpoint.quote_error = ConnectionError("relayer not deployed")
    orchestrator = make_orchestrator(make_attestation_source())

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.automatic))

    assert result.kind == FailureKind.quote_unavailable
    assert source_signer.signed == []


@pytest.mark.parametrize("balance", [999_999, None])
def test_insufficient_balance(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint, source_signer, balance):
    """Too little or no balance fails before signing."""
    source_endpoint.balance = balance
    orchestrator = make_orchestrator(make_attestation_source())

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert result.kind == FailureKind.insufficient_balance
    assert not result.kind.is_resumable
    assert source_signer.signed == []


def test_submission_rejected(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint):
    """A reverted source transaction is terminal."""
    source_endpoint.reject = True
    source = make_attestation_source()
    orchestrator = make_orchestrator(source)

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert result.kind == FailureKind.submission_rejected
    assert not result.kind.is_resumable
    assert result.last_state == TransferState.created
    assert source.calls == 0


def test_source_timeout_keeps_broadcast_transactions(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_endpoint, source_signer):
    """approve() landed, transferTokens() timed out: resuming does not sign the transfer again."""
    source_endpoint.submit_errors[2] = TimeoutError("Transaction 0xsepolia0002 is not in the chain after 180 seconds")
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))
    intent = _transfer(token, destination_chain, wallet)

    failure = orchestrator.execute(intent)

    assert failure.kind == FailureKind.message_unavailable
    assert failure.kind.is_resumable
    assert failure.last_state == TransferState.source_submitted
    assert failure.source_txids == ("0xsepolia0001",)
    assert failure.resume_point.state == TransferState.source_submitted
    assert source_signer.resets == 1

    result = orchestrator.execute(intent, resume_from=failure.resume_point)

    assert result.ok
    assert [tx.description for tx in source_signer.signed] == ["approve", "transferTokens"]
    assert source_endpoint.submit_calls == 2
    assert source_endpoint.parsed == ["0xsepolia0001"]


def test_source_unconfirmed_transaction_kept(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint):
    """A broadcast transaction that did not confirm in time is part of the resume point."""
    source_endpoint.submit_errors[2] = TransactionNotConfirmed("not mined", txid="0xpending")
    orchestrator = make_orchestrator(make_attestation_source())

    failure = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert failure.kind == FailureKind.message_unavailable
    assert failure.source_txids == ("0xsepolia0001", "0xpending")


def test_source_revert_after_broadcast(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_endpoint):
    """A reverted transfer is terminal but still reports what was broadcast."""
    source_endpoint.submit_errors[2] = TransactionRejected("execution reverted", txid="0xreverted")
    orchestrator = make_orchestrator(make_attestation_source())

    failure = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert failure.kind == FailureKind.submission_rejected
    assert not failure.kind.is_resumable
    assert failure.last_state == TransferState.source_submitted
    assert failure.source_txids == ("0xsepolia0001", "0xreverted")


def test_destination_timeout_redeems_again_on_resume(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, destination_endpoint, destination_signer):
    """Redemption is checked and resubmitted on resume, the chain refuses a second consumption."""
    destination_endpoint.submit_errors[1] = TimeoutError("receipt wait timed out")
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))
    intent = _transfer(token, destination_chain, wallet)

    failure = orchestrator.execute(intent)

    assert failure.kind == FailureKind.submission_rejected
    assert failure.last_state == TransferState.attestation_received
    assert failure.destination_txids == ()
    assert destination_signer.resets == 1

    result = orchestrator.execute(intent, resume_from=failure.resume_point)

    assert result.ok
    assert result.destination_txids == ("0xbasesepolia0001",)
    assert destination_endpoint.completed_checks == 2


def test_attestation_timeout_and_resume(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_endpoint, source_signer, clock):
    """Guardian timeout keeps the message id, resuming waits again without resubmitting."""
    orchestrator = make_orchestrator(make_attestation_source(available_on=None))
    intent = _transfer(token, destination_chain, wallet)

    failure = orchestrator.execute(intent)

    assert not failure.ok
    assert failure.kind == FailureKind.attestation_timeout
    assert failure.kind.is_resumable
    assert failure.last_state == TransferState.attestation_pending
    assert failure.message_id == MESSAGE
    assert failure.source_txids == ("0xsepolia0001", "0xsepolia0002")
    assert clock.now >= 60.0
    _assert_monotonic(failure.states)

    # Guardians catch up
    orchestrator.attestation_service.source = make_attestation_source(vaa=transfer_vaa)
    result = orchestrator.execute(intent, resume_from=failure.resume_point)

    assert result.ok
    assert result.states[:2] == [TransferState.created, TransferState.attestation_pending]
    assert result.source_txids == failure.source_txids
    assert len(source_endpoint.submitted) == 2
    assert len(source_signer.signed) == 2


def test_resume_from_source_txid(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_endpoint, source_signer):
    """With only the source transaction known, the message is read from it."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    result = orchestrator.execute(
        _transfer(token, destination_chain, wallet),
        resume_from=ResumePoint(state=TransferState.source_submitted, source_txids=("0xsaved",)),
    )

    assert result.ok
    assert source_endpoint.parsed == ["0xsaved"]
    assert source_signer.signed == []
    assert result.message_id == MESSAGE


def test_resume_from_attestation(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, destination_signer):
    """With the VAA known, the guardians are not asked again."""
    source = make_attestation_source(vaa=transfer_vaa)
    orchestrator = make_orchestrator(source)
    attestation = Attestation(kind=AttestationKind.transfer, message_id=MESSAGE, vaa_bytes=transfer_vaa)

    result = orchestrator.execute(
        _transfer(token, destination_chain, wallet),
        resume_from=ResumePoint(state=TransferState.attestation_received, attestation=attestation),
    )

    assert result.ok
    assert source.calls == 0
    assert result.message_id == MESSAGE
    assert [tx.description for tx in destination_signer.signed] == ["completeTransfer"]


def test_resume_from_destination_submitted(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_signer, destination_signer):
    """With the redemption known, nothing is submitted."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))
    attestation = Attestation(kind=AttestationKind.transfer, message_id=MESSAGE, vaa_bytes=transfer_vaa)

    result = orchestrator.execute(
        _transfer(token, destination_chain, wallet),
        resume_from=ResumePoint(
            state=TransferState.destination_submitted,
            attestation=attestation,
            destination_txids=("0xredeemed",),
        ),
    )

    assert result.ok
    assert result.states == [TransferState.created, TransferState.destination_submitted, TransferState.completed]
    assert result.destination_txids == ("0xredeemed",)
    assert source_signer.signed == []
    assert destination_signer.signed == []


def test_resume_wrong_attestation_kind(make_orchestrator, make_attestation_source, attest_meta_vaa, token, destination_chain, wallet):
    """An asset metadata VAA cannot complete a transfer."""
    orchestrator = make_orchestrator(make_attestation_source())
    attestation = Attestation(kind=AttestationKind.asset_metadata, message_id=MESSAGE, vaa_bytes=attest_meta_vaa)

    with pytest.raises(ValueError):
        orchestrator.execute(
            _transfer(token, destination_chain, wallet),
            resume_from=ResumePoint(state=TransferState.attestation_received, attestation=attestation),
        )


def test_resume_terminal_state(make_orchestrator, make_attestation_source, token, destination_chain, wallet):
    """Completed runs cannot be resumed."""
    orchestrator = make_orchestrator(make_attestation_source())
    with pytest.raises(ValueError):
        orchestrator.execute(_transfer(token, destination_chain, wallet), resume_from=ResumePoint(state=TransferState.completed, message_id=MESSAGE))


def test_missing_destination_signer(source_chain, destination_chain, source_endpoint, destination_endpoint, source_signer, make_attestation_source, token, wallet):
    """Manual delivery without a destination signer is refused before touching the chain."""
    orchestrator = TransferOrchestrator(
        endpoints={source_chain: source_endpoint, destination_chain: destination_endpoint},
        signers={source_chain: source_signer},
        attestation_service=AttestationService(make_attestation_source()),
    )

    with pytest.raises(ValueError):
        orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert source_endpoint.built == []


def test_automatic_delivery(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet, source_endpoint, destination_endpoint, destination_signer):
    """Relayer redeems, we only watch the destination chain."""
    source_endpoint.relayer_fee = 1_000
    destination_endpoint.completed_answers = [False, False, True]
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.automatic))

    assert result.ok
    assert result.quote.relayer_fee == 1_000
    assert result.quote.destination_amount == 999_000
    assert destination_endpoint.completed_checks == 3
    assert destination_signer.signed == []
    assert TransferState.destination_submitted not in result.states
    assert result.state == TransferState.completed


def test_automatic_delivery_timeout(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet):
    """Relayer never redeeming is a resumable delivery timeout."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.automatic))

    assert result.kind == FailureKind.delivery_timeout
    assert result.kind.is_resumable
    assert result.last_state == TransferState.attestation_received
    assert result.attestation is not None


def test_executor_delivery(make_orchestrator, make_attestation_source, make_executor_source, transfer_vaa, token, destination_chain, wallet):
    """Executor delivery reports the destination transactions."""
    executor_source = make_executor_source([PENDING, DELIVERED])
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), executor_source=executor_source)

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor))

    assert result.ok
    assert result.states == FULL_RUN
    assert result.destination_txids == ("0xdest",)
    assert executor_source.calls == 2


def test_executor_status_bound(make_orchestrator, make_attestation_source, make_executor_source, transfer_vaa, token, destination_chain, wallet):
    """Executor status is checked exactly five times before giving up."""
    executor_source = make_executor_source([PENDING])
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), executor_source=executor_source)

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor))

    assert result.kind == FailureKind.delivery_timeout
    assert executor_source.calls == 5


def test_executor_aborted(make_orchestrator, make_attestation_source, make_executor_source, transfer_vaa, token, destination_chain, wallet):
    """Executor giving up is not retried."""
    executor_source = make_executor_source([ABORTED])
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), executor_source=executor_source)

    result = orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor))

    assert result.kind == FailureKind.submission_rejected
    assert executor_source.calls == 1


def test_executor_needs_status_source(make_orchestrator, make_attestation_source, token, destination_chain, wallet):
    """Executor delivery without a status source is a configuration error."""
    orchestrator = make_orchestrator(make_attestation_source())
    with pytest.raises(ValueError):
        orchestrator.execute(_transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor))


def test_executor_resume_needs_source_txid(make_orchestrator, make_attestation_source, make_executor_source, transfer_vaa, token, destination_chain, wallet):
    """Executor status is looked up by source transaction, an attestation alone is not enough."""
    executor_source = make_executor_source([DELIVERED])
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), executor_source=executor_source)
    attestation = Attestation(kind=AttestationKind.transfer, message_id=MESSAGE, vaa_bytes=transfer_vaa)

    with pytest.raises(ValueError):
        orchestrator.execute(
            _transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor),
            resume_from=ResumePoint(state=TransferState.attestation_received, attestation=attestation),
        )

    assert executor_source.calls == 0


def test_recover_and_complete(make_orchestrator, make_attestation_source, transfer_vaa, source_chain, destination_chain, token, wallet, destination_signer):
    """An unredeemed transfer is found from its source transaction and finished."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))

    recovered = orchestrator.recover(source_chain, "0xlost")

    assert recovered.message_id == MESSAGE
    assert recovered.attestation.kind == AttestationKind.transfer
    assert recovered.body.amount == 1_000_000
    assert recovered.destination_chain == destination_chain
    assert recovered.completed is False
    assert recovered.resume_point.state == TransferState.attestation_received

    result = orchestrator.execute(_transfer(token, destination_chain, wallet), resume_from=recovered.resume_point)

    assert result.ok
    assert result.source_txids == ("0xlost",)
    assert [tx.description for tx in destination_signer.signed] == ["completeTransfer"]


def test_recover_not_attested(make_orchestrator, make_attestation_source, source_chain):
    """Unsigned message resumes from the attestation wait."""
    orchestrator = make_orchestrator(make_attestation_source(available_on=None))

    recovered = orchestrator.recover(source_chain, "0xlost")

    assert recovered.attestation is None
    assert recovered.completed is None
    assert recovered.resume_point.state == TransferState.attestation_pending


def test_recover_asset_registration(make_orchestrator, make_attestation_source, attest_meta_vaa, source_chain):
    """Asset metadata messages are recognised."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=attest_meta_vaa))

    recovered = orchestrator.recover(source_chain, "0xattest")

    assert recovered.attestation.kind == AttestationKind.asset_metadata
    assert recovered.body.decimals == 6
    assert recovered.destination_chain is None


def test_recover_without_message(make_orchestrator, make_attestation_source, source_chain, source_endpoint):
    """A transaction that published nothing cannot be recovered."""
    source_endpoint.parse_transaction = lambda txid: []
    orchestrator = make_orchestrator(make_attestation_source())

    with pytest.raises(ChainEndpointError):
        orchestrator.recover(source_chain, "0xunrelated")


def test_callback_error_becomes_failure(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet):
    """An error raised by a state change callback fails the run with its artifacts."""

    def _callback(intent, state):
        if state == TransferState.attestation_pending:
            raise RuntimeError("dashboard is down")

    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), on_state_change=_callback)

    result = orchestrator.execute(_transfer(token, destination_chain, wallet))

    assert result.kind == FailureKind.unexpected_error
    assert "dashboard is down" in result.detail
    assert result.last_state == TransferState.attestation_pending
    assert result.message_id == MESSAGE
    assert result.source_txids == ("0xsepolia0001", "0xsepolia0002")


def test_execute_many(make_orchestrator, make_attestation_source, transfer_vaa, source_chain, token, destination_chain, wallet):
    """Parallel runs return results in input order, one failure does not stop the others."""
    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa))
    native = TokenRef.native(source_chain)

    intents = [
        _transfer(token, destination_chain, wallet, amount=100),
        _transfer(token, destination_chain, wallet, amount=10**13),
        AssetRegistrationIntent(token=native, destination_chain=destination_chain),
        _transfer(token, destination_chain, wallet, amount=300),
    ]
    orchestrator.endpoints[destination_chain].wrapped[TokenRef(source_chain, "0x" + "ee" * 20)] = "0x" + "11" * 20

    results = orchestrator.execute_many(intents, max_workers=2, progress=False)

    assert [r.intent for r in results] == intents
    assert [r.ok for r in results] == [True, False, True, True]
    assert results[1].kind == FailureKind.insufficient_balance
    assert results[2].already_completed


def test_execute_many_unexpected_error(make_orchestrator, make_attestation_source, transfer_vaa, token, destination_chain, wallet):
    """A run raising outside the bridge steps does not lose the other results."""

    def _callback(intent, state):
        if intent.amount == 200 and state == TransferState.attestation_received:
            raise RuntimeError("boom")

    orchestrator = make_orchestrator(make_attestation_source(vaa=transfer_vaa), on_state_change=_callback)
    intents = [_transfer(token, destination_chain, wallet, amount=amount) for amount in (100, 200, 300)]

    results = orchestrator.execute_many(intents, max_workers=3, progress=False)

    assert [r.ok for r in results] == [True, False, True]
    assert results[1].kind == FailureKind.unexpected_error
    assert results[1].attestation is not None


def test_execute_many_validates_first(make_orchestrator, make_attestation_source, token, destination_chain, wallet, source_signer):
    """An invalid intent fails the batch before any run starts."""
    orchestrator = make_orchestrator(make_attestation_source())

    with pytest.raises(ValueError):
        orchestrator.execute_many(
            [
                _transfer(token, destination_chain, wallet),
                _transfer(token, destination_chain, wallet, delivery_mode=DeliveryMode.executor),
            ],
            progress=False,
        )

    assert source_signer.signed == []
