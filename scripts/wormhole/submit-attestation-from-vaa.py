"""Create a wrapped token from an already signed asset metadata VAA.

For tokens attested on a chain we have no signer for, e.g. a token native
to Near. Look up the attestation on Wormholescan::

    https://api.wormholescan.io/api/v1/operations?txHash=YOUR_TX_HASH

and take ``emitterChain``, ``emitterAddress.hex`` and ``sequence`` from the response,
and the origin token from ``content.standarizedProperties``.

Environment variables
---------------------
- ``VAA_CHAIN_ID``: Emitter Wormhole chain ID, e.g. ``15``.
- ``VAA_EMITTER``: Emitter address, 32 bytes hex.
- ``VAA_SEQUENCE``: Message sequence.
- ``TOKEN_CHAIN``: Wormhole chain name where the token is native, e.g. ``Near``.
- ``TOKEN_ADDRESS``: Origin token address, 32 bytes hex.
- ``DESTINATION_CHAIN``: Wormhole chain name to create the wrapped token on.
- ``PRIVATE_KEY``: Destination chain signer key.
- ``NETWORK``, ``JSON_RPC_<CHAIN>``, ``WORMHOLE_TOKEN_BRIDGE_<CHAIN>``, ``WORMHOLE_CORE_BRIDGE_<CHAIN>``:
  see :py:func:`wormhole_bridge.config.load_config_from_env`, for the destination chain only.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    NETWORK=mainnet VAA_CHAIN_ID=15 VAA_EMITTER=148410499d3fcda4dcfd68a1ebfcdddda16ab28326448d4aae4d2f0465cdfcb7 VAA_SEQUENCE=6237 \\
    TOKEN_CHAIN=Near TOKEN_ADDRESS=0x8e4cb3f8feea536220153560228b7dc074fee23363164a108821d6f274dac910 \\
    DESTINATION_CHAIN=Base \\
        python scripts/wormhole/submit-attestation-from-vaa.py
"""

import logging
import os

from scripts.wormhole.script_utils import create_orchestrator_from_env, print_result
from wormhole_bridge.chain import TokenRef
from wormhole_bridge.models import AssetRegistrationIntent, MessageId, ResumePoint, TransferState
from wormhole_bridge.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    log_level = os.environ.get("LOG_LEVEL", "info")
    setup_console_logging(default_log_level=log_level)

    for var in ("VAA_CHAIN_ID", "VAA_EMITTER", "VAA_SEQUENCE", "TOKEN_CHAIN", "TOKEN_ADDRESS", "DESTINATION_CHAIN"):
        assert os.environ.get(var), f"{var} environment variable required"

    message_id = MessageId(
        chain_id=int(os.environ["VAA_CHAIN_ID"]),
        emitter=os.environ["VAA_EMITTER"].removeprefix("0x").lower(),
        sequence=int(os.environ["VAA_SEQUENCE"]),
    )

    destination_chain_name = os.environ["DESTINATION_CHAIN"]
    config, orchestrator = create_orchestrator_from_env([destination_chain_name])

    intent = AssetRegistrationIntent(
        token=TokenRef(config.chain(os.environ["TOKEN_CHAIN"]), os.environ["TOKEN_ADDRESS"]),
        destination_chain=config.chain(destination_chain_name),
    )

    wrapped = orchestrator.resolve_wrapped_asset(intent.token, intent.destination_chain)
    if wrapped:
        print(f"Already wrapped on {intent.destination_chain}: {wrapped}")
        return

    print(f"Submitting attestation {message_id} to {intent.destination_chain}")
    result = orchestrator.execute(
        intent,
        resume_from=ResumePoint(state=TransferState.attestation_pending, message_id=message_id),
    )

    if result.attestation is not None:
        meta = result.attestation.body
        print(f"Token: {meta.symbol} ({meta.name}), decimals: {meta.decimals}")

    print_result(result)


if __name__ == "__main__":
    main()
