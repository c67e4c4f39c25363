"""Transfer tokens between chains through the Wormhole token bridge.

Checks the source balance, locks the tokens on the source chain, waits for the
guardian signed VAA and redeems it on the destination chain. With automatic
delivery the relayer redeems it instead, paid from the transferred amount.

Environment variables
---------------------
- ``SOURCE_CHAIN``: Wormhole chain name to send from, e.g. ``Sepolia``.
- ``DESTINATION_CHAIN``: Wormhole chain name to send to.
- ``TOKEN_ADDRESS``: Token address on the source chain, or ``native``.
- ``AMOUNT``: Human-readable amount, e.g. ``0.01``.
- ``TOKEN_DECIMALS``: Token decimals. Defaults to 18.
- ``DELIVERY``: ``manual`` (default), ``automatic`` or ``executor``.
- ``NATIVE_GAS``: Optional, for relayed deliveries. Human-readable part of the amount
  swapped to destination gas.
- ``RECIPIENT``: Destination address. Defaults to the signer address.
- ``PRIVATE_KEY``: Signer key, used on both chains.
- ``NETWORK``, ``JSON_RPC_<CHAIN>``, ``WORMHOLE_TOKEN_BRIDGE_<CHAIN>``, ``WORMHOLE_CORE_BRIDGE_<CHAIN>``,
  ``WORMHOLE_RELAYER_<CHAIN>``: see :py:func:`wormhole_bridge.config.load_config_from_env`.
- ``LOG_LEVEL``: Logging level (default: ``info``).

Usage::

    SOURCE_CHAIN=Sepolia DESTINATION_CHAIN=BaseSepolia \\
    TOKEN_ADDRESS=0x1c7D4B196Cb0C7B01d743Fbc6116a902379C7238 TOKEN_DECIMALS=6 AMOUNT=0.01 \\
        python scripts/wormhole/token-transfer.py
"""

import logging
import os

from scripts.wormhole.script_utils import create_orchestrator_from_env, print_result
from wormhole_bridge.chain import TokenRef
from wormhole_bridge.models import DeliveryMode, TransferIntent
from wormhole_bridge.utils import parse_units, setup_console_logging

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

    amount = os.environ.get("AMOUNT")
    assert amount, "AMOUNT environment variable required"

    decimals = int(os.environ.get("TOKEN_DECIMALS", "18"))
    delivery_mode = DeliveryMode(os.environ.get("DELIVERY", "manual").lower())
    native_gas = os.environ.get("NATIVE_GAS")

    config, orchestrator = create_orchestrator_from_env([source_chain_name, destination_chain_name])
    source_chain = config.chain(source_chain_name)
    destination_chain = config.chain(destination_chain_name)

    source_address = orchestrator.get_signer(source_chain).address()
    recipient = os.environ.get("RECIPIENT") or orchestrator.get_signer(destination_chain).address()

    intent = TransferIntent(
        token=TokenRef(source_chain, token_address),
        amount=parse_units(amount, decimals),
        source_address=source_address,
        destination_chain=destination_chain,
        destination_address=recipient,
        delivery_mode=delivery_mode,
        native_gas=parse_units(native_gas, decimals) if native_gas else None,
    )

    print(f"Transferring {amount} {token_address} from {source_chain} to {recipient} on {destination_chain}, delivery {delivery_mode.value}")
    result = orchestrator.execute(intent)
    print_result(result)

    if not result.ok and result.source_txids:
        print(f"\nTo resume, run scripts/wormhole/recover-transfer.py with TXID={result.source_txids[-1]}")


if __name__ == "__main__":
    main()
