"""HTTP session management for Wormholescan and the Executor API.

Sessions come with retry logic and rate limiting.

Rate limiting is thread-safe using the SQLite backend, so one session can be
shared by all threads of :py:meth:`~wormhole_bridge.orchestrator.TransferOrchestrator.execute_many`.

The :py:class:`WormholeApiSession` carries the API URL so that downstream
functions do not need a separate ``api_url`` argument.
"""

import logging
from pathlib import Path

from pyrate_limiter import SQLiteBucket
from requests import Session
from requests_ratelimiter import LimiterAdapter
from urllib3.util.retry import Retry

from wormhole_bridge.constants import WORMHOLESCAN_API_URL

logger = logging.getLogger(__name__)

#: Default SQLite database path for rate limiting state.
WORMHOLESCAN_RATE_LIMIT_SQLITE_DATABASE = Path("~/.wormhole-bridge/wormholescan/rate-limit.sqlite").expanduser()

#: Default number of retries for API requests
DEFAULT_RETRIES = 5

#: Default backoff factor for retries (seconds)
DEFAULT_BACKOFF_FACTOR = 0.5

#: Default rate limit for API requests per second.
#:
#: Wormholescan does not publish a limit for anonymous clients.
#: Attestation polling runs at one request per 5 seconds per transfer,
#: so this leaves room for a few dozen parallel transfers.
DEFAULT_REQUESTS_PER_SECOND = 5.0

#: Seconds before an individual HTTP request gives up
DEFAULT_REQUEST_TIMEOUT = 30.0


class LoggingRetry(Retry):
    """urllib3 retry policy that logs every retry at WARNING level."""

    def __init__(self, *args, logger: logging.Logger | None = None, **kwargs):
        self.logger = logger or logging.getLogger(__name__)
        super().__init__(*args, **kwargs)

    def new(self, **kw) -> "LoggingRetry":
        retry = super().new(**kw)
        retry.logger = self.logger
        return retry

    def increment(self, method=None, url=None, response=None, error=None, _pool=None, _stacktrace=None):
        status = response.status if response is not None else None
        self.logger.warning(
            "Retrying %s %s, status=%s, error=%s, history=%d",
            method,
            url,
            status,
            error,
            len(self.history),
        )
        return super().increment(method=method, url=url, response=response, error=error, _pool=_pool, _stacktrace=_stacktrace)


class WormholeApiSession(Session):
    """A :py:class:`requests.Session` subclass that carries an API base URL.

    Use :py:func:`create_wormholescan_session` to create instances.
    """

    #: API base URL (e.g. ``https://api.wormholescan.io``).
    api_url: str

    def __init__(self, api_url: str = WORMHOLESCAN_API_URL):
        super().__init__()
        self.api_url = api_url.rstrip("/")

    def __repr__(self) -> str:
        return f"<WormholeApiSession api_url={self.api_url!r}>"


def create_wormholescan_session(
    api_url: str = WORMHOLESCAN_API_URL,
    retries: int = DEFAULT_RETRIES,
    backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
    requests_per_second: float = DEFAULT_REQUESTS_PER_SECOND,
    pool_maxsize: int = 32,
    rate_limit_db_path: Path = WORMHOLESCAN_RATE_LIMIT_SQLITE_DATABASE,
) -> WormholeApiSession:
    """Create a :py:class:`WormholeApiSession` for Wormholescan or the Executor API.

    The session is configured with:

    - The API URL stored in :py:attr:`WormholeApiSession.api_url`
    - Rate limiting shared across threads via SQLite
    - Retry logic for transient errors using exponential backoff

    404 is not retried: Wormholescan answers 404 for VAAs the guardians
    have not signed yet, and the attestation wait handles that itself.

    Example::

        from wormhole_bridge.constants import WORMHOLESCAN_TESTNET_API_URL
        from wormhole_bridge.session import create_wormholescan_session

        # Mainnet (default)
        session = create_wormholescan_session()

        # Testnet
        session = create_wormholescan_session(api_url=WORMHOLESCAN_TESTNET_API_URL)

    :param api_url:
        API base URL. Defaults to Wormholescan mainnet.
    :param retries:
        Maximum number of retry attempts for failed requests
    :param backoff_factor:
        Backoff factor for exponential retry delays
    :param requests_per_second:
        Maximum requests per second
    :param pool_maxsize:
        Maximum number of connections to keep in the connection pool.
        Should be at least as large as max_workers when using parallel requests.
    :param rate_limit_db_path:
        Path to SQLite database for storing rate limit state.
        Defaults to ``~/.wormhole-bridge/wormholescan/rate-limit.sqlite``.
    :return:
        Configured session
    """
    rate_limit_db_path.parent.mkdir(parents=True, exist_ok=True)

    session = WormholeApiSession(api_url=api_url)

    # Executor status is a POST endpoint
    retry_policy = LoggingRetry(
        total=retries,
        backoff_factor=backoff_factor,
        status_forcelist=[429, 500, 502, 503, 504],
        respect_retry_after_header=True,
        logger=logger,
        allowed_methods=LoggingRetry.DEFAULT_ALLOWED_METHODS | frozenset(["POST"]),
    )

    adapter = LimiterAdapter(
        per_second=requests_per_second,
        max_retries=retry_policy,
        pool_connections=pool_maxsize,
        pool_maxsize=pool_maxsize,
        bucket_class=SQLiteBucket,
        bucket_kwargs={"path": str(rate_limit_db_path)},
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session
