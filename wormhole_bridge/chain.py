"""Chain and token references.

Value objects naming a chain inside a Wormhole network environment
and a fungible asset on it.

Example::

    from wormhole_bridge.chain import ChainRef, Network, TokenRef

    sepolia = ChainRef(Network.testnet, "Sepolia")
    usdc = TokenRef(sepolia, "0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238")
    eth = TokenRef.native(sepolia)
"""

import enum
from dataclasses import dataclass

import base58
from eth_utils import is_hex, to_checksum_address

from wormhole_bridge.constants import CHAIN_PLATFORMS, NATIVE_TOKEN, WORMHOLE_CHAIN_IDS, WORMHOLE_CHAIN_NAMES

#: Wormhole universal addresses are always 32 bytes
UNIVERSAL_ADDRESS_LENGTH = 32


class Network(enum.Enum):
    """Wormhole network environment."""

    mainnet = "Mainnet"
    testnet = "Testnet"
    devnet = "Devnet"

    @classmethod
    def parse(cls, value: "str | Network") -> "Network":
        """Accept ``"mainnet"``, ``"Mainnet"`` or a :py:class:`Network`."""
        if isinstance(value, Network):
            return value
        for member in cls:
            if member.value.lower() == value.lower():
                return member
        raise ValueError(f"Unknown Wormhole network: {value}")


@dataclass(slots=True, frozen=True)
class ChainRef:
    """A chain inside a network environment.

    Compared by value, so it can be used as a dictionary key
    for per-chain endpoints and signers.
    """

    #: Network environment
    network: Network

    #: Wormhole chain name, e.g. ``"Ethereum"``, ``"Solana"``
    name: str

    def __post_init__(self):
        assert isinstance(self.network, Network), f"Expected Network, got {self.network!r}"
        assert self.name in WORMHOLE_CHAIN_IDS, f"Unknown Wormhole chain: {self.name}"

    def __str__(self) -> str:
        return f"{self.name} ({self.network.value})"

    @property
    def wormhole_chain_id(self) -> int:
        """16-bit Wormhole chain ID."""
        return WORMHOLE_CHAIN_IDS[self.name]

    @property
    def platform(self) -> str:
        """Platform tag, e.g. ``"Evm"``, used to pick a chain backend."""
        return CHAIN_PLATFORMS[self.name]

    @classmethod
    def from_wormhole_chain_id(cls, network: Network, chain_id: int) -> "ChainRef":
        """Resolve a numeric Wormhole chain ID from a VAA back to a chain reference."""
        name = WORMHOLE_CHAIN_NAMES.get(chain_id)
        if name is None:
            raise ValueError(f"Unknown Wormhole chain id: {chain_id}")
        return cls(network, name)


@dataclass(slots=True, frozen=True)
class TokenRef:
    """A fungible asset on a chain.

    ``address`` is the chain-local token address, or :py:data:`~wormhole_bridge.constants.NATIVE_TOKEN`
    for the chain's native gas token.
    """

    #: Chain the token address is valid on
    chain: ChainRef

    #: Token address in the chain's own format, or ``"native"``
    address: str

    def __str__(self) -> str:
        return f"{self.address} on {self.chain}"

    @property
    def is_native(self) -> bool:
        return self.address == NATIVE_TOKEN

    @classmethod
    def native(cls, chain: ChainRef) -> "TokenRef":
        return cls(chain, NATIVE_TOKEN)


def to_universal_address(address: str) -> bytes:
    """Convert a chain-local address to a 32-byte Wormhole universal address.

    - EVM 20-byte hex addresses are left-padded with zeroes
    - 32-byte hex addresses (Aptos, Sui, emitters) are taken as is
    - Anything else is decoded as base58 (Solana public keys)

    :raise ValueError:
        If the decoded address is longer than 32 bytes.
    """
    if address.startswith("0x") or (is_hex(address) and len(address) in (40, 64)):
        raw = bytes.fromhex(address.removeprefix("0x"))
    else:
        raw = base58.b58decode(address)

    if len(raw) > UNIVERSAL_ADDRESS_LENGTH:
        raise ValueError(f"Address {address} does not fit to a 32-byte universal address")

    return raw.rjust(UNIVERSAL_ADDRESS_LENGTH, b"\x00")


def universal_to_evm_address(universal: bytes | str) -> str:
    """Take the lower 20 bytes of a universal address as an EVM checksum address."""
    if isinstance(universal, str):
        universal = bytes.fromhex(universal.removeprefix("0x"))
    assert len(universal) == UNIVERSAL_ADDRESS_LENGTH, f"Expected 32 bytes, got {len(universal)}"
    return to_checksum_address(universal[12:])
