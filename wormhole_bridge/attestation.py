"""Guardian attestation retrieval.

After a source chain transaction publishes a Wormhole message, the guardian
network observes it and, once the source chain reaches finality, signs it
into a VAA. This module waits for that VAA.

The wait is dominated by source chain finality, e.g. ~15-19 minutes for
Ethereum mainnet, so the default timeout is 25 minutes.

Wormholescan returns:

- **404** — the guardians have not signed the message yet
- **200** — ``{"data": {"vaa": "<base64>"}}``

Example::

    from wormhole_bridge.attestation import AttestationService, WormholescanAttestationSource
    from wormhole_bridge.session import create_wormholescan_session

    service = AttestationService(WormholescanAttestationSource(create_wormholescan_session()))
    attestation = service.wait(request)

    # Feed attestation.vaa_bytes to completeTransfer() on the destination chain
"""

import base64
import logging
import time
from dataclasses import replace
from typing import Callable, Protocol

from wormhole_bridge.models import Attestation, AttestationRequest
from wormhole_bridge.retry import PollingPolicy, PollTimeout, poll_until
from wormhole_bridge.session import DEFAULT_REQUEST_TIMEOUT, WormholeApiSession

logger = logging.getLogger(__name__)

#: HTTP 404 status code indicating the VAA is not signed yet
HTTP_NOT_FOUND = 404


class AttestationSource(Protocol):
    """Where signed VAAs are looked up."""

    def fetch(self, chain_id: int, emitter: str, sequence: int) -> bytes | None:
        """One lookup. ``None`` if the VAA is not available yet."""


class AttestationTimeout(PollTimeout):
    """No VAA within the wait.

    Not a permanent failure: the message is still on its way through
    the guardian network. Wait again later with the same message id.
    """

    #: Message we were waiting for, set by :py:meth:`AttestationService.wait`
    message_id = None


class WormholescanAttestationSource:
    """Fetch signed VAAs from the Wormholescan API."""

    def __init__(self, session: WormholeApiSession, timeout: float = DEFAULT_REQUEST_TIMEOUT):
        self.session = session
        self.timeout = timeout

    def __repr__(self) -> str:
        return f"<WormholescanAttestationSource {self.session.api_url}>"

    def get_vaa_url(self, chain_id: int, emitter: str, sequence: int) -> str:
        return f"{self.session.api_url}/api/v1/vaas/{chain_id}/{emitter.removeprefix('0x').lower()}/{sequence}"

    def fetch(self, chain_id: int, emitter: str, sequence: int) -> bytes | None:
        """Look up one VAA.

        :return:
            Serialised VAA, or ``None`` if Wormholescan does not have it yet.

        :raise requests.HTTPError:
            Any other error response.
        """
        url = self.get_vaa_url(chain_id, emitter, sequence)
        response = self.session.get(url, timeout=self.timeout)

        if response.status_code == HTTP_NOT_FOUND:
            logger.debug("VAA not yet available (404): %s", url)
            return None

        response.raise_for_status()

        data = response.json().get("data") or {}
        encoded = data.get("vaa")
        if not encoded:
            return None

        return base64.b64decode(encoded)


class AttestationService:
    """Wait for guardian-signed VAAs.

    :param source:
        Where to look the VAAs up.

    :param policy:
        Default timeout and poll interval. 25 minutes at 5 seconds.

    :param clock:
        Monotonic clock, replaced with a fake in tests.

    :param sleep:
        Sleep function, replaced with a fake in tests.
    """

    def __init__(
        self,
        source: AttestationSource,
        policy: PollingPolicy | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.source = source
        self.policy = policy or PollingPolicy()
        self.clock = clock
        self.sleep = sleep

    def fetch(self, request: AttestationRequest) -> Attestation | None:
        """One-shot lookup.

        :return:
            The attestation, or ``None`` if it is not signed yet.
        """
        message_id = request.message_id
        raw = self.source.fetch(message_id.chain_id, message_id.emitter, message_id.sequence)
        if raw is None:
            return None
        return Attestation(kind=request.kind, message_id=message_id, vaa_bytes=raw)

    def wait(
        self,
        request: AttestationRequest,
        timeout: float | None = None,
        poll_interval: float | None = None,
        on_attempt: Callable[[int, float], None] | None = None,
    ) -> Attestation:
        """Poll until the VAA is available.

        Lookup errors, e.g. HTTP 5xx after the session retries, count as
        "not available yet" and are retried at the same fixed interval.

        :param request:
            Message to wait for.

        :param timeout:
            Override the policy timeout, in seconds.

        :param poll_interval:
            Override the policy poll interval, in seconds.

        :param on_attempt:
            Optional progress callback receiving ``(attempt, elapsed)``.

        :return:
            The signed attestation.

        :raise AttestationTimeout:
            The timeout elapsed without the VAA becoming available.
        """
        policy = self.policy
        if timeout is not None:
            policy = replace(policy, timeout=timeout)
        if poll_interval is not None:
            policy = replace(policy, poll_interval=poll_interval)

        logger.info(
            "Waiting for %s attestation of message %s from %s, timeout %s",
            request.kind.value,
            request.message_id,
            request.source_chain,
            f"{policy.timeout:.0f}s" if policy.timeout is not None else "none",
        )

        try:
            return poll_until(
                lambda: self.fetch(request),
                policy,
                description=f"VAA {request.message_id}",
                exception_class=AttestationTimeout,
                on_attempt=on_attempt,
                clock=self.clock,
                sleep=self.sleep,
            )
        except AttestationTimeout as e:
            e.message_id = request.message_id
            raise
