"""Executor delivery status.

With executor delivery, a third-party executor redeems the VAA on the
destination chain. We track it through the Executor API::

    POST {api_url}/v0/status/tx
    {"txHash": "0x...", "chainId": 10002}

The response is a list of relay requests originating from the transaction,
each with a ``status``:

- ``pending`` — seen, not yet delivered
- ``submitted`` — delivered, ``txs`` lists the destination transactions
- ``underpaid``, ``unsupported``, ``aborted`` — the executor gave up

The status check is a short attempt-bounded loop, 5 attempts at 5 seconds
by default.
"""

import logging
import time
from typing import Callable, Protocol

from wormhole_bridge.chain import ChainRef
from wormhole_bridge.retry import PollingPolicy, PollTimeout, poll_until
from wormhole_bridge.session import DEFAULT_REQUEST_TIMEOUT, WormholeApiSession

logger = logging.getLogger(__name__)

#: Relay delivered
STATUS_SUBMITTED = "submitted"

#: Executor refused or abandoned the relay
FAILED_STATUSES = frozenset(["underpaid", "unsupported", "aborted"])


class ExecutorDeliveryFailed(Exception):
    """The executor reported a terminal failure for the relay."""

    def __init__(self, message: str, status: str):
        super().__init__(message)

        #: Executor status string, e.g. ``"underpaid"``
        self.status = status


class DeliveryTimeout(PollTimeout):
    """The destination side did not confirm delivery within the wait."""


class ExecutorStatusSource(Protocol):
    """Where executor relay status is looked up."""

    def fetch_status(self, chain: ChainRef, txid: str) -> list[dict]:
        """Relay requests originating from a source transaction."""


class ExecutorApiClient:
    """Executor API status client."""

    def __init__(self, session: WormholeApiSession, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.session = session
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"<ExecutorApiClient {self.session.api_url}>"

    def fetch_status(self, chain: ChainRef, txid: str) -> list[dict]:
        """Fetch relay status for a source transaction.

        :raise requests.HTTPError:
            On error responses.
        """
        response = self.session.post(
            f"{self.session.api_url}/v0/status/tx",
            json={"txHash": txid, "chainId": chain.wormhole_chain_id},
            timeout=self.timeout,
        )
        response.raise_for_status()
        data = response.json()
        assert isinstance(data, list), f"Unexpected executor status response: {data}"
        return data


def check_executor_delivery(statuses: list[dict]) -> list[str] | None:
    """Interpret one executor status response.

    :return:
        Destination transaction ids once delivered, ``None`` while pending.

    :raise ExecutorDeliveryFailed:
        The executor gave up on the relay.
    """
    if not statuses:
        return None

    for entry in statuses:
        status = entry.get("status", "")
        if status in FAILED_STATUSES:
            raise ExecutorDeliveryFailed(f"Executor reported {status} for relay: {entry.get('failureCause') or 'no cause given'}", status=status)

    if all(entry.get("status") == STATUS_SUBMITTED for entry in statuses):
        return [tx["txHash"] for entry in statuses for tx in entry.get("txs", []) if tx.get("txHash")]

    return None


def wait_for_executor_delivery(
    source: ExecutorStatusSource,
    chain: ChainRef,
    txid: str,
    policy: PollingPolicy | None = None,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    """Poll the executor until the relay is delivered.

    :param source:
        Executor status source.

    :param chain:
        Source chain of the transfer.

    :param txid:
        Source transaction id.

    :param policy:
        Defaults to :py:meth:`PollingPolicy.executor_status`.

    :return:
        Destination transaction ids.

    :raise DeliveryTimeout:
        Not delivered within the attempt bound.

    :raise ExecutorDeliveryFailed:
        The executor gave up.
    """
    policy = policy or PollingPolicy.executor_status()
    failure: ExecutorDeliveryFailed | None = None

    def _fetch() -> list[str] | None:
        nonlocal failure
        statuses = source.fetch_status(chain, txid)
        try:
            return check_executor_delivery(statuses)
        except ExecutorDeliveryFailed as e:
            failure = e
            # Stop polling with a sentinel, raised below
            return []

    delivered = poll_until(
        _fetch,
        policy,
        description=f"executor delivery of {txid} from {chain}",
        exception_class=DeliveryTimeout,
        clock=clock,
        sleep=sleep,
    )

    if failure is not None:
        raise failure

    return delivered
