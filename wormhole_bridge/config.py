"""Bridge configuration.

Configuration is held in plain dataclasses passed to constructors.
Only the scripts read environment variables, through :py:func:`load_config_from_env`.

Example::

    from wormhole_bridge.config import BridgeConfig, ChainConfig
    from wormhole_bridge.chain import Network

    config = BridgeConfig(
        network=Network.testnet,
        chains={
            "Sepolia": ChainConfig(
                rpc_url="https://ethereum-sepolia-rpc.publicnode.com",
                token_bridge="0xDB5492265f6038831E89f495670FF909aDe94bd9",
                core_bridge="0x4a8bc80Ed5a4067f1CCf107057b8270E0cC11A78",
            ),
        },
    )
"""

import logging
import os
from dataclasses import dataclass, field

from wormhole_bridge.chain import ChainRef, Network
from wormhole_bridge.constants import (
    DEFAULT_EVM_GAS_LIMIT,
    EXECUTOR_API_URL,
    EXECUTOR_TESTNET_API_URL,
    WORMHOLE_CHAIN_IDS,
    WORMHOLESCAN_API_URL,
    WORMHOLESCAN_TESTNET_API_URL,
)
from wormhole_bridge.retry import PollingPolicy

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ChainConfig:
    """Connection details for one chain."""

    #: JSON-RPC endpoint
    rpc_url: str

    #: Wormhole token bridge contract address
    token_bridge: str

    #: Wormhole core bridge contract address, emits ``LogMessagePublished``
    core_bridge: str

    #: Token bridge relayer contract address, needed for automatic delivery
    relayer: str | None = None

    #: Gas limit for bridge transactions
    gas_limit: int = DEFAULT_EVM_GAS_LIMIT

    #: Seconds to wait for a submitted transaction to be mined
    confirmation_timeout: float = 180.0


@dataclass(slots=True)
class BridgeConfig:
    """Everything needed to wire up a :py:class:`~wormhole_bridge.orchestrator.TransferOrchestrator`.

    Example:

    .. code-block:: python

        # Production defaults: 25 minute attestation wait at 5 second interval
        config = BridgeConfig(network=Network.mainnet, chains={...})

        # Fast polling for tests
        config = BridgeConfig.create_test_config()
    """

    #: Network environment all chains belong to
    network: Network

    #: Chain name → connection details
    chains: dict[str, ChainConfig] = field(default_factory=dict)

    #: Wormholescan API base URL. Defaults by network.
    wormholescan_api_url: str | None = None

    #: Executor API base URL. Defaults by network.
    executor_api_url: str | None = None

    #: Guardian attestation wait
    attestation_policy: PollingPolicy = field(default_factory=PollingPolicy)

    #: Wait for a relayer to redeem, or for a created wrapped asset to show up
    delivery_policy: PollingPolicy = field(default_factory=PollingPolicy)

    #: Executor status sub-loop
    executor_policy: PollingPolicy = field(default_factory=PollingPolicy.executor_status)

    def __post_init__(self):
        self.network = Network.parse(self.network)

        if self.wormholescan_api_url is None:
            self.wormholescan_api_url = WORMHOLESCAN_API_URL if self.network == Network.mainnet else WORMHOLESCAN_TESTNET_API_URL

        if self.executor_api_url is None:
            self.executor_api_url = EXECUTOR_API_URL if self.network == Network.mainnet else EXECUTOR_TESTNET_API_URL

    def chain(self, name: str) -> ChainRef:
        """Chain reference for a configured chain name."""
        return ChainRef(self.network, name)

    def get_chain_config(self, chain: ChainRef) -> ChainConfig:
        """Look up the connection details of a chain.

        :raise ValueError:
            Chain not configured or in a different network.
        """
        if chain.network != self.network:
            raise ValueError(f"{chain} is not in the configured network {self.network.value}")

        chain_config = self.chains.get(chain.name)
        if chain_config is None:
            raise ValueError(f"No configuration for {chain}, configured: {', '.join(self.chains) or 'none'}")

        return chain_config

    @property
    def chain_refs(self) -> list[ChainRef]:
        return [self.chain(name) for name in self.chains]

    @classmethod
    def create_test_config(cls, chains: dict[str, ChainConfig] | None = None) -> "BridgeConfig":
        """Create a testnet config with fast polling for tests."""
        return cls(
            network=Network.testnet,
            chains=chains or {},
            attestation_policy=PollingPolicy.create_test_config(),
            delivery_policy=PollingPolicy.create_test_config(),
            executor_policy=PollingPolicy(timeout=None, poll_interval=0.01, max_attempts=5),
        )


def _env_name(chain_name: str) -> str:
    return chain_name.upper()


def load_config_from_env(
    chain_names: list[str] | None = None,
    environ: dict[str, str] | None = None,
) -> BridgeConfig:
    """Read the bridge configuration from environment variables.

    - ``NETWORK``: ``mainnet``, ``testnet`` (default) or ``devnet``
    - ``CHAINS``: comma-separated chain names, unless ``chain_names`` is given
    - ``JSON_RPC_<CHAIN>``: RPC endpoint, e.g. ``JSON_RPC_SEPOLIA``
    - ``WORMHOLE_TOKEN_BRIDGE_<CHAIN>``: token bridge address
    - ``WORMHOLE_CORE_BRIDGE_<CHAIN>``: core bridge address
    - ``WORMHOLE_RELAYER_<CHAIN>``: optional token bridge relayer address
    - ``ATTESTATION_TIMEOUT``: optional attestation wait in seconds
    - ``POLL_INTERVAL``: optional poll interval in seconds

    :param chain_names:
        Wormhole chain names to configure.

    :param environ:
        Environment to read. Defaults to ``os.environ``.
    """
    if environ is None:
        environ = os.environ

    network = Network.parse(environ.get("NETWORK", "testnet"))

    if chain_names is None:
        chain_list = environ.get("CHAINS")
        assert chain_list, "CHAINS environment variable required, e.g. CHAINS=Sepolia,BaseSepolia"
        chain_names = [c.strip() for c in chain_list.split(",") if c.strip()]

    chains = {}
    for name in chain_names:
        assert name in WORMHOLE_CHAIN_IDS, f"Unknown Wormhole chain: {name}"
        suffix = _env_name(name)

        rpc_url = environ.get(f"JSON_RPC_{suffix}")
        assert rpc_url, f"JSON_RPC_{suffix} environment variable required"

        token_bridge = environ.get(f"WORMHOLE_TOKEN_BRIDGE_{suffix}")
        assert token_bridge, f"WORMHOLE_TOKEN_BRIDGE_{suffix} environment variable required"

        core_bridge = environ.get(f"WORMHOLE_CORE_BRIDGE_{suffix}")
        assert core_bridge, f"WORMHOLE_CORE_BRIDGE_{suffix} environment variable required"

        chains[name] = ChainConfig(
            rpc_url=rpc_url,
            token_bridge=token_bridge,
            core_bridge=core_bridge,
            relayer=environ.get(f"WORMHOLE_RELAYER_{suffix}") or None,
        )

    attestation_policy = PollingPolicy()
    if "ATTESTATION_TIMEOUT" in environ:
        attestation_policy.timeout = float(environ["ATTESTATION_TIMEOUT"])
    if "POLL_INTERVAL" in environ:
        attestation_policy.poll_interval = float(environ["POLL_INTERVAL"])

    logger.info("Loaded bridge config for %s: %s", network.value, ", ".join(chains))

    return BridgeConfig(
        network=network,
        chains=chains,
        attestation_policy=attestation_policy,
    )
