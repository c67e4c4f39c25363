"""Verified Action Approval (VAA) parsing.

A VAA is the guardian-signed envelope around a Wormhole message.
We do not verify guardian signatures here: the destination chain core
bridge does that when the VAA is submitted. We only decode the fields the
orchestrator and the recovery tooling need.

Layout (big-endian)::

    header:
        version              u8
        guardian_set_index   u32
        signature_count      u8
        signatures           signature_count * 66 bytes
    body:
        timestamp            u32
        nonce                u32
        emitter_chain        u16
        emitter_address      32 bytes
        sequence             u64
        consistency_level    u8
        payload              rest

Token bridge payloads:

- ``1`` **Transfer** — amount, token address, token chain, recipient, recipient chain, fee
- ``2`` **AttestMeta** — token address, token chain, decimals, symbol, name
- ``3`` **TransferWithPayload** — like Transfer, but a sender address and
  an arbitrary payload instead of the fee

Token bridge amounts are normalised to at most 8 decimals.
"""

from dataclasses import dataclass

from eth_utils import keccak

#: Bytes taken by one guardian signature (index + 65 byte signature)
SIGNATURE_LENGTH = 66

#: Bytes in the fixed part of the body before the payload
BODY_HEADER_LENGTH = 51

#: Token bridge payload ID for a plain transfer
PAYLOAD_TRANSFER = 1

#: Token bridge payload ID for asset metadata attestation
PAYLOAD_ATTEST_META = 2

#: Token bridge payload ID for a transfer carrying an arbitrary payload
PAYLOAD_TRANSFER_WITH_PAYLOAD = 3


@dataclass(slots=True, frozen=True)
class ParsedVAA:
    """Decoded VAA envelope."""

    version: int

    guardian_set_index: int

    #: Number of guardian signatures attached
    signature_count: int

    #: UNIX seconds of the observed source chain block
    timestamp: int

    nonce: int

    #: Wormhole chain ID of the emitter
    emitter_chain: int

    #: 32-byte emitter address, hex without ``0x``
    emitter_address: str

    sequence: int

    consistency_level: int

    #: The signed body: everything after the signatures
    body: bytes

    #: Application payload
    payload: bytes

    @property
    def digest(self) -> bytes:
        """Double keccak256 of the body.

        The hash the token bridge uses to mark a VAA as consumed
        in ``isTransferCompleted()``.
        """
        return keccak(keccak(self.body))


@dataclass(slots=True, frozen=True)
class AssetMetaBody:
    """Token bridge ``AttestMeta`` payload."""

    #: 32-byte origin token address, hex without ``0x``
    token_address: str

    #: Wormhole chain ID where the token is native
    token_chain: int

    decimals: int

    symbol: str

    name: str


@dataclass(slots=True, frozen=True)
class TransferBody:
    """Token bridge ``Transfer`` or ``TransferWithPayload`` payload."""

    payload_id: int

    #: Amount, normalised to at most 8 decimals
    amount: int

    #: 32-byte origin token address, hex without ``0x``
    token_address: str

    token_chain: int

    #: 32-byte recipient address, hex without ``0x``
    recipient: str

    recipient_chain: int

    #: Relayer fee for plain transfers, ``None`` for payload transfers
    fee: int | None = None

    #: 32-byte sender address for payload transfers
    sender: str | None = None

    #: Application payload for payload transfers
    payload: bytes | None = None


def _uint(data: bytes, start: int, length: int) -> int:
    return int.from_bytes(data[start : start + length], "big")


def _text(data: bytes) -> str:
    return data.rstrip(b"\x00").decode("utf-8", errors="replace")


def parse_vaa(raw: bytes) -> ParsedVAA:
    """Decode a VAA envelope.

    :param raw:
        Serialised VAA bytes as returned by Wormholescan or a guardian.

    :raise ValueError:
        If the data is truncated.
    """
    if len(raw) < 6:
        raise ValueError(f"VAA too short: {len(raw)} bytes")

    signature_count = raw[5]
    body_start = 6 + signature_count * SIGNATURE_LENGTH
    body = raw[body_start:]

    if len(body) < BODY_HEADER_LENGTH:
        raise ValueError(f"VAA truncated: {signature_count} signatures, body {len(body)} bytes")

    return ParsedVAA(
        version=raw[0],
        guardian_set_index=_uint(raw, 1, 4),
        signature_count=signature_count,
        timestamp=_uint(body, 0, 4),
        nonce=_uint(body, 4, 4),
        emitter_chain=_uint(body, 8, 2),
        emitter_address=body[10:42].hex(),
        sequence=_uint(body, 42, 8),
        consistency_level=body[50],
        body=body,
        payload=body[BODY_HEADER_LENGTH:],
    )


def parse_token_bridge_payload(payload: bytes) -> AssetMetaBody | TransferBody:
    """Decode a token bridge payload.

    :raise ValueError:
        Unknown payload ID or truncated payload.
    """
    if not payload:
        raise ValueError("Empty token bridge payload")

    payload_id = payload[0]

    if payload_id == PAYLOAD_ATTEST_META:
        if len(payload) < 100:
            raise ValueError(f"AttestMeta payload truncated: {len(payload)} bytes")
        return AssetMetaBody(
            token_address=payload[1:33].hex(),
            token_chain=_uint(payload, 33, 2),
            decimals=payload[35],
            symbol=_text(payload[36:68]),
            name=_text(payload[68:100]),
        )

    if payload_id in (PAYLOAD_TRANSFER, PAYLOAD_TRANSFER_WITH_PAYLOAD):
        if len(payload) < 133:
            raise ValueError(f"Transfer payload truncated: {len(payload)} bytes")

        common = dict(
            payload_id=payload_id,
            amount=_uint(payload, 1, 32),
            token_address=payload[33:65].hex(),
            token_chain=_uint(payload, 65, 2),
            recipient=payload[67:99].hex(),
            recipient_chain=_uint(payload, 99, 2),
        )

        if payload_id == PAYLOAD_TRANSFER:
            return TransferBody(fee=_uint(payload, 101, 32), **common)

        return TransferBody(sender=payload[101:133].hex(), payload=payload[133:], **common)

    raise ValueError(f"Unknown token bridge payload id: {payload_id}")
