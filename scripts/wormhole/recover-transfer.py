"""Recover a bridge operation from its source transaction.

Reads the Wormhole message from the source transaction, looks up its VAA
and checks whether the destination chain has redeemed it. With ``COMPLETE=true``,
also finishes a manual transfer that was never redeemed.

Environment variables
---------------------
- ``SOURCE_CHAIN``: Wormhole chain name of the source transaction.
- ``TXID``: Source transaction hash.
- ``DESTINATION_CHAIN``: Optional. Destination chain to check and complete on.
- ``COMPLETE``: Optional. ``true`` to redeem the transfer if it is not redeemed yet.
- ``PRIVATE_KEY``: Signer key.
- ``NETWORK``, ``JSON_RPC_<CHAIN>``, ``WORMHOLE_TOKEN_BRIDGE_<CHAIN>``, ``WORMHOLE_CORE_BRIDGE_<CHAIN>``:
  see :py:func:`wormhole_bridge.config.load_config_from_env`.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    SOURCE_CHAIN=Sepolia DESTINATION_CHAIN=BaseSepolia TXID=0x... \\
        python scripts/wormhole/recover-transfer.py
"""

import logging
import os

from scripts.wormhole.script_utils import create_orchestrator_from_env, print_recovered, print_result
from wormhole_bridge.chain import TokenRef, universal_to_evm_address
from wormhole_bridge.models import TransferIntent
from wormhole_bridge.utils import setup_console_logging
from wormhole_bridge.vaa import TransferBody

logger = logging.getLogger(__name__)


def main():
    log_level = os.environ.get("LOG_LEVEL", "info")
    setup_console_logging(default_log_level=log_level)

    source_chain_name = os.environ.get("SOURCE_CHAIN")
    assert source_chain_name, "SOURCE_CHAIN environment variable required"

    txid = os.environ.get("TXID")
    assert txid, "TXID environment variable required"

    chain_names = [source_chain_name]
    destination_chain_name = os.environ.get("DESTINATION_CHAIN")
    if destination_chain_name:
        chain_names.append(destination_chain_name)

    config, orchestrator = create_orchestrator_from_env(chain_names)
    source_chain = config.chain(source_chain_name)

    recovered = orchestrator.recover(source_chain, txid)
    print_recovered(recovered)

    complete = os.environ.get("COMPLETE", "false").lower() == "true"
    if not complete or recovered.completed is not False:
        return

    body = recovered.body
    assert isinstance(body, TransferBody), f"Only transfers can be completed, got {type(body).__name__}"
    destination_chain = recovered.destination_chain
    assert destination_chain.platform == "Evm", f"Can only complete on EVM chains, got {destination_chain}"

    # Amount and token here only describe the intent, the VAA decides what is redeemed
    intent = TransferIntent(
        token=TokenRef(source_chain, "0x" + body.token_address),
        amount=max(body.amount, 1),
        source_address=orchestrator.get_signer(source_chain).address(),
        destination_chain=destination_chain,
        destination_address=universal_to_evm_address(body.recipient),
    )

    print(f"\nCompleting transfer on {destination_chain}")
    result = orchestrator.execute(intent, resume_from=recovered.resume_point)
    print_result(result)


if __name__ == "__main__":
    main()
