"""Stub chain backends and sources for orchestration tests.

No RPC or HTTP access: endpoints, signers and attestation sources are
in-memory stand-ins that record what was asked of them.
"""

import pytest

from wormhole_bridge.attestation import AttestationService
from wormhole_bridge.chain import ChainRef, Network, TokenRef, to_universal_address
from wormhole_bridge.endpoint import TransactionRejected, UnsignedTransaction
from wormhole_bridge.models import MessageId
from wormhole_bridge.orchestrator import TransferOrchestrator
from wormhole_bridge.retry import PollingPolicy
from wormhole_bridge.vaa import PAYLOAD_ATTEST_META, PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD

#: Token bridge emitter used by the stubs
EMITTER = "00" * 12 + "db" * 20

SOURCE_TOKEN = "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238"
WRAPPED_TOKEN = "0x9999999999999999999999999999999999999999"
WALLET = "0x7E5F4552091A69125d5DfCb7b8C2659029395Bdf"


class FakeClock:
    """Monotonic clock advanced only by :py:meth:`sleep`."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


class VaaBuilder:
    """Serialise VAAs and token bridge payloads."""

    def vaa(self, payload: bytes, emitter_chain: int = 10002, emitter: str = EMITTER, sequence: int = 1, signatures: int = 1) -> bytes:
        """VAA with dummy guardian signatures."""
        header = bytes([1]) + (4).to_bytes(4, "big") + bytes([signatures])
        for index in range(signatures):
            header += bytes([index]) + bytes(65)

        body = (
            (1_700_000_000).to_bytes(4, "big")
            + (0).to_bytes(4, "big")
            + emitter_chain.to_bytes(2, "big")
            + bytes.fromhex(emitter)
            + sequence.to_bytes(8, "big")
            + bytes([1])
            + payload
        )
        return header + body

    def transfer_payload(
        self,
        amount: int,
        token: str,
        token_chain: int,
        recipient: str,
        recipient_chain: int,
        fee: int = 0,
        sender: str | None = None,
        payload: bytes = b"",
    ) -> bytes:
        """Transfer payload, or a payload transfer when ``sender`` is given."""
        data = (
            bytes([PAYLOAD_TRANSFER if sender is None else PAYLOAD_TRANSFER_WITH_PAYLOAD])
            + amount.to_bytes(32, "big")
            + to_universal_address(token)
            + token_chain.to_bytes(2, "big")
            + to_universal_address(recipient)
            + recipient_chain.to_bytes(2, "big")
        )
        if sender is None:
            return data + fee.to_bytes(32, "big")
        return data + to_universal_address(sender) + payload

    def attest_meta_payload(self, token: str, token_chain: int, decimals: int, symbol: str, name: str) -> bytes:
        return (
            bytes([PAYLOAD_ATTEST_META])
            + to_universal_address(token)
            + token_chain.to_bytes(2, "big")
            + bytes([decimals])
            + symbol.encode().ljust(32, b"\x00")
            + name.encode().ljust(32, b"\x00")
        )


class StubEndpoint:
    """In-memory chain endpoint."""

    def __init__(self, chain: ChainRef, balance: int | None = 10**12):
        self.chain = chain
        self.balance = balance
        self.balance_error: Exception | None = None
        self.relayer_fee = 0
        self.quote_error: Exception | None = None
        self.reject = False
        self.sequence = 1

        #: Submission number, counting from 1, mapped to the error it raises
        self.submit_errors: dict[int, Exception] = {}
        self.submit_calls = 0

        #: Origin token → local address
        self.wrapped: dict[TokenRef, str] = {}
        self.wrapped_error: Exception | None = None

        #: Token that becomes wrapped when createWrapped lands
        self.wrap_on_create: tuple[TokenRef, str] | None = None

        #: Return values of is_transfer_completed, last one repeats
        self.completed_answers = [False]
        self.completed_checks = 0

        self.submitted: list[bytes] = []
        self.parsed: list[str] = []
        self.built: list[str] = []

    def get_balance(self, address: str, token: TokenRef) -> int | None:
        if self.balance_error:
            raise self.balance_error
        return self.balance

    def submit(self, signed_tx: bytes) -> list[str]:
        self.submit_calls += 1
        if self.reject:
            raise TransactionRejected("execution reverted")
        if self.submit_calls in self.submit_errors:
            raise self.submit_errors[self.submit_calls]

        self.submitted.append(signed_tx)
        if b"createWrapped" in signed_tx and self.wrap_on_create:
            token, address = self.wrap_on_create
            self.wrapped[token] = address
        return [f"0x{self.chain.name.lower()}{len(self.submitted):04d}"]

    def parse_transaction(self, txid: str) -> list[MessageId]:
        self.parsed.append(txid)
        return [MessageId(chain_id=self.chain.wormhole_chain_id, emitter=EMITTER, sequence=self.sequence)]

    def get_wrapped_asset(self, token: TokenRef) -> str | None:
        if token.chain == self.chain:
            return token.address
        if self.wrapped_error:
            raise self.wrapped_error
        return self.wrapped.get(token)

    def get_native_wrapped_token(self) -> str:
        return "0x" + "ee" * 20

    def is_transfer_completed(self, attestation) -> bool:
        index = min(self.completed_checks, len(self.completed_answers) - 1)
        self.completed_checks += 1
        return self.completed_answers[index]

    def quote_relayer_fee(self, destination: ChainRef, token: TokenRef) -> int:
        if self.quote_error:
            raise self.quote_error
        return self.relayer_fee

    def _tx(self, description: str) -> UnsignedTransaction:
        self.built.append(description)
        return UnsignedTransaction(chain=self.chain, description=description, data={"description": description})

    def create_attestation(self, token, payer):
        return [self._tx("attestToken")]

    def initiate_transfer(self, intent):
        return [self._tx("approve"), self._tx("transferTokens")]

    def submit_attestation(self, attestation, payer):
        return [self._tx("createWrapped")]

    def redeem(self, attestation, payer):
        return [self._tx("completeTransfer")]


class StubSigner:
    """Signs by echoing the transaction description."""

    def __init__(self, chain: ChainRef, address: str = WALLET):
        self.chain = chain
        self._address = address
        self.signed: list[UnsignedTransaction] = []
        self.resets = 0

    def address(self) -> str:
        return self._address

    def reset(self):
        self.resets += 1

    def sign(self, unsigned_tx: UnsignedTransaction) -> bytes:
        self.signed.append(unsigned_tx)
        return f"signed:{unsigned_tx.description}".encode()


class StubAttestationSource:
    """Returns ``None`` until attempt ``available_on``, then the VAA."""

    def __init__(self, vaa: bytes | None = None, available_on: int | None = 1, error: Exception | None = None):
        self.vaa = vaa
        self.available_on = available_on
        self.error = error
        self.calls = 0

    def fetch(self, chain_id: int, emitter: str, sequence: int) -> bytes | None:
        self.calls += 1
        if self.error:
            raise self.error
        if self.available_on is None or self.calls < self.available_on:
            return None
        return self.vaa


class StubExecutorSource:
    """Returns canned status responses in order, repeating the last one."""

    def __init__(self, responses: list[list[dict]]):
        self.responses = responses
        self.calls = 0

    def fetch_status(self, chain: ChainRef, txid: str) -> list[dict]:
        response = self.responses[min(self.calls, len(self.responses) - 1)]
        self.calls += 1
        return response


@pytest.fixture()
def source_chain() -> ChainRef:
    return ChainRef(Network.testnet, "Sepolia")


@pytest.fixture()
def destination_chain() -> ChainRef:
    return ChainRef(Network.testnet, "BaseSepolia")


@pytest.fixture()
def token(source_chain) -> TokenRef:
    return TokenRef(source_chain, SOURCE_TOKEN)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def source_endpoint(source_chain) -> StubEndpoint:
    return StubEndpoint(source_chain)


@pytest.fixture()
def destination_endpoint(destination_chain) -> StubEndpoint:
    return StubEndpoint(destination_chain)


@pytest.fixture()
def source_signer(source_chain) -> StubSigner:
    return StubSigner(source_chain)


@pytest.fixture()
def destination_signer(destination_chain) -> StubSigner:
    return StubSigner(destination_chain)


@pytest.fixture()
def vaa_builder() -> VaaBuilder:
    return VaaBuilder()


@pytest.fixture()
def wallet(source_signer) -> str:
    return source_signer.address()


@pytest.fixture()
def transfer_vaa(vaa_builder, source_chain, destination_chain, wallet) -> bytes:
    """Signed VAA of a 1,000,000 unit transfer to the destination chain."""
    payload = vaa_builder.transfer_payload(
        amount=1_000_000,
        token=SOURCE_TOKEN,
        token_chain=source_chain.wormhole_chain_id,
        recipient=wallet,
        recipient_chain=destination_chain.wormhole_chain_id,
    )
    return vaa_builder.vaa(payload, emitter_chain=source_chain.wormhole_chain_id)


@pytest.fixture()
def attest_meta_vaa(vaa_builder, source_chain) -> bytes:
    payload = vaa_builder.attest_meta_payload(SOURCE_TOKEN, source_chain.wormhole_chain_id, 6, "USDC", "USD Coin")
    return vaa_builder.vaa(payload, emitter_chain=source_chain.wormhole_chain_id)


@pytest.fixture()
def make_attestation_source():
    return StubAttestationSource


@pytest.fixture()
def make_executor_source():
    return StubExecutorSource


@pytest.fixture()
def wrapped_token() -> str:
    return WRAPPED_TOKEN


@pytest.fixture()
def make_orchestrator(source_chain, destination_chain, source_endpoint, destination_endpoint, source_signer, destination_signer, clock):
    """Build an orchestrator over the stubs, polling on the fake clock.

    Attestation wait: 60s at 5s. Relayer and wrapped asset wait: 30s at 5s.
    Executor status: 5 attempts at 5s.
    """

    def _make(source, executor_source=None, **kwargs) -> TransferOrchestrator:
        service = AttestationService(source, policy=PollingPolicy(timeout=60.0, poll_interval=5.0), clock=clock, sleep=clock.sleep)
        return TransferOrchestrator(
            endpoints={source_chain: source_endpoint, destination_chain: destination_endpoint},
            signers={source_chain: source_signer, destination_chain: destination_signer},
            attestation_service=service,
            executor_source=executor_source,
            delivery_policy=kwargs.pop("delivery_policy", PollingPolicy(timeout=30.0, poll_interval=5.0)),
            executor_policy=kwargs.pop("executor_policy", PollingPolicy(timeout=None, poll_interval=5.0, max_attempts=5)),
            **kwargs,
        )

    return _make
