"""Wormhole constants.

Chain identifiers, API endpoints and default polling values.

Wormhole uses its own 16-bit chain identifiers, not EVM chain IDs.
The same chain name maps to the same Wormhole chain ID on mainnet; testnet-only
chains such as Sepolia have their own IDs in the ``10000+`` range.

- `Wormhole chain IDs <https://wormhole.com/docs/products/reference/chain-ids/>`_
- `Wormholescan API <https://api.wormholescan.io/swagger/index.html>`_
"""

#: Wormholescan API base URL (mainnet).
WORMHOLESCAN_API_URL = "https://api.wormholescan.io"

#: Wormholescan API base URL (testnet).
WORMHOLESCAN_TESTNET_API_URL = "https://api.testnet.wormholescan.io"

#: Executor status API base URL (mainnet).
EXECUTOR_API_URL = "https://executor.labsapis.com"

#: Executor status API base URL (testnet).
EXECUTOR_TESTNET_API_URL = "https://executor-testnet.labsapis.com"

#: Marker used in place of a token address for the chain's native gas token.
NATIVE_TOKEN = "native"

#: How long we wait for the guardian quorum to sign a VAA.
#:
#: Guardian latency is dominated by source chain finality,
#: e.g. ~15-19 minutes for Ethereum mainnet.
DEFAULT_ATTESTATION_TIMEOUT = 25 * 60.0

#: Seconds between attestation polls.
DEFAULT_POLL_INTERVAL = 5.0

#: How many times we ask the Executor API for the delivery status.
DEFAULT_EXECUTOR_STATUS_ATTEMPTS = 5

#: Seconds between Executor status polls.
DEFAULT_EXECUTOR_STATUS_INTERVAL = 5.0

#: Gas limit used for EVM token bridge transactions
DEFAULT_EVM_GAS_LIMIT = 1_000_000

#: Wormhole chain name → Wormhole chain ID.
WORMHOLE_CHAIN_IDS: dict[str, int] = {
    "Solana": 1,
    "Ethereum": 2,
    "Bsc": 4,
    "Polygon": 5,
    "Avalanche": 6,
    "Fantom": 10,
    "Celo": 14,
    "Near": 15,
    "Moonbeam": 16,
    "Sui": 21,
    "Aptos": 22,
    "Arbitrum": 23,
    "Optimism": 24,
    "Base": 30,
    "Berachain": 39,
    "Sepolia": 10002,
    "ArbitrumSepolia": 10003,
    "BaseSepolia": 10004,
    "OptimismSepolia": 10005,
    "Holesky": 10006,
    "PolygonSepolia": 10007,
}

#: Wormhole chain name → platform tag used to select a chain backend.
CHAIN_PLATFORMS: dict[str, str] = {
    "Solana": "Solana",
    "Near": "Near",
    "Sui": "Sui",
    "Aptos": "Aptos",
    **{
        name: "Evm"
        for name in (
            "Ethereum",
            "Bsc",
            "Polygon",
            "Avalanche",
            "Fantom",
            "Celo",
            "Moonbeam",
            "Arbitrum",
            "Optimism",
            "Base",
            "Berachain",
            "Sepolia",
            "ArbitrumSepolia",
            "BaseSepolia",
            "OptimismSepolia",
            "Holesky",
            "PolygonSepolia",
        )
    },
}

#: Wormhole chain ID → chain name.
WORMHOLE_CHAIN_NAMES: dict[int, str] = {v: k for k, v in WORMHOLE_CHAIN_IDS.items()}
