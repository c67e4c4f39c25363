"""Register a token on another chain through the Wormhole token bridge.

Checks whether the token is already wrapped on the destination chain.
If not, attests it on its native chain, waits for the guardians to sign
the attestation and creates the wrapped token on the destination chain.

The destination chain signer needs gas for ``createWrapped()``.

Environment variables
---------------------
- ``SOURCE_CHAIN``: Wormhole chain name where the token is native, e.g. ``Sepolia``.
- ``DESTINATION_CHAIN``: Wormhole chain name to create the wrapped token on.
- ``TOKEN_ADDRESS``: Token address on the source chain, or ``native`` for the wrapped gas token.
- ``PRIVATE_KEY``: Signer key, used on both chains.
- ``NETWORK``, ``JSON_RPC_<CHAIN>``, ``WORMHOLE_TOKEN_BRIDGE_<CHAIN>``, ``WORMHOLE_CORE_BRIDGE_<CHAIN>``:
  see :py:func:`wormhole_bridge.config.load_config_from_env`.
- ``ATTESTATION_TXID``: Optional. Attestation transaction printed by an earlier run
  that timed out. Skips the source submission and waits for its VAA instead.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    SOURCE_CHAIN=Sepolia DESTINATION_CHAIN=BaseSepolia \\
    TOKEN_ADDRESS=0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238 \\
        python scripts/wormhole/create-wrapped.py
"""

import logging
import os

from scripts.wormhole.script_utils import create_orchestrator_from_env, print_result
from wormhole_bridge.chain import TokenRef
from wormhole_bridge.models import AssetRegistrationIntent, ResumePoint, TransferState
from wormhole_bridge.utils import setup_console_logging

logger = logging.getLogger(__name__)


def main():
    log_level = os.environ.get("LOG_LEVEL", "info")
    setup_console_logging(default_log_level=log_level)

    source_chain_name = os.environ.get("SOURCE_CHAIN")
    assert source_chain_name, "SOURCE_CHAIN environment variable required"

    destination_chain_name = os.environ.get("DESTINATION_CHAIN")
    assert destination_chain_name, "DESTINATION_CHAIN environment variable required"

    token_address = os.environ.get("TOKEN_ADDRESS")
    assert token_address, "TOKEN_ADDRESS environment variable required, or 'native'"

    config, orchestrator = create_orchestrator_from_env([source_chain_name, destination_chain_name])

    intent = AssetRegistrationIntent(
        token=TokenRef(config.chain(source_chain_name), token_address),
        destination_chain=config.chain(destination_chain_name),
    )

    resume_from = None
    attestation_txid = os.environ.get("ATTESTATION_TXID")
    if attestation_txid:
        print(f"Resuming from attestation transaction {attestation_txid}")
        resume_from = ResumePoint(state=TransferState.source_submitted, source_txids=(attestation_txid,))

    print(f"Registering {intent.token} on {intent.destination_chain}")
    result = orchestrator.execute(intent, resume_from=resume_from)
    print_result(result)

    if not result.ok and result.source_txids:
        print(f"\nTo retry without a new attestation, run again with ATTESTATION_TXID={result.source_txids[-1]}")


if __name__ == "__main__":
    main()
