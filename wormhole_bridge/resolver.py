"""Wrapped asset lookup.

Before attesting a token on a destination chain we check whether the
token bridge there already knows it. Every check re-queries the chain;
nothing is cached, as the registration can happen at any time
from another client.
"""

import logging
import time
from typing import Callable, Mapping

from wormhole_bridge.chain import ChainRef, TokenRef
from wormhole_bridge.endpoint import ChainEndpoint
from wormhole_bridge.retry import PollingPolicy, PollTimeout, poll_until

logger = logging.getLogger(__name__)


class WrappedAssetTimeout(PollTimeout):
    """The wrapped asset did not appear on the destination chain within the wait."""


class WrappedAssetResolver:
    """Check whether a token is registered on a chain.

    :param endpoints:
        Chain endpoints by chain.
    """

    def __init__(
        self,
        endpoints: Mapping[ChainRef, ChainEndpoint],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.endpoints = endpoints
        self.clock = clock
        self.sleep = sleep

    def get_endpoint(self, chain: ChainRef) -> ChainEndpoint:
        endpoint = self.endpoints.get(chain)
        if endpoint is None:
            raise ValueError(f"No chain endpoint for {chain}")
        return endpoint

    def canonical_token(self, origin: TokenRef) -> TokenRef:
        """Replace the native marker with the wrapped native token the token bridge attests.

        A native token is bridged as its wrapped form, e.g. ETH as WETH.
        """
        if not origin.is_native:
            return origin
        wrapped = self.get_endpoint(origin.chain).get_native_wrapped_token()
        return TokenRef(origin.chain, wrapped)

    def resolve(self, origin: TokenRef, destination: ChainRef) -> str | None:
        """Look up the local address of ``origin`` on ``destination``.

        Any read error is logged and reported as not registered.
        A real connectivity problem then surfaces from the following submission.

        :param origin:
            Token on its native chain.

        :param destination:
            Chain to look on.

        :return:
            Token address on ``destination``, or ``None``.
        """
        endpoint = self.get_endpoint(destination)

        try:
            if origin.chain == destination:
                return endpoint.get_wrapped_asset(origin)
            return endpoint.get_wrapped_asset(self.canonical_token(origin))
        except Exception as e:
            logger.warning("Could not resolve wrapped %s on %s, treating as not registered: %s", origin, destination, e, exc_info=True)
            return None

    def wait_for_wrapped_asset(self, origin: TokenRef, destination: ChainRef, policy: PollingPolicy | None = None) -> str:
        """Poll until ``origin`` is registered on ``destination``.

        Bounded by default. Pass :py:meth:`PollingPolicy.unbounded` to wait
        until it appears.

        :raise WrappedAssetTimeout:
            Bounded policy exhausted.
        """
        policy = policy or PollingPolicy()
        return poll_until(
            lambda: self.resolve(origin, destination),
            policy,
            description=f"wrapped {origin} on {destination}",
            exception_class=WrappedAssetTimeout,
            clock=self.clock,
            sleep=self.sleep,
        )
