"""Shared utilities for Wormhole scripts.

.. note::
    Scripts import this module as ``from scripts.wormhole.script_utils import ...``.
    This requires the scripts to be run from the repository root (where ``scripts/``
    is on the Python path), e.g. ``python scripts/wormhole/token-transfer.py``.
"""

import os
from dataclasses import fields

from tabulate import tabulate

from wormhole_bridge.config import BridgeConfig, load_config_from_env
from wormhole_bridge.models import BridgeResult, RecoveredTransfer, TransferFailure
from wormhole_bridge.orchestrator import TransferOrchestrator
from wormhole_bridge.utils import get_url_domain


def create_orchestrator_from_env(chain_names: list[str]) -> tuple[BridgeConfig, TransferOrchestrator]:
    """Build the orchestrator for the given chains from environment variables.

    ``PRIVATE_KEY`` is used for every chain.
    See :py:func:`~wormhole_bridge.config.load_config_from_env` for the rest.
    """
    private_key = os.environ.get("PRIVATE_KEY")
    assert private_key, "PRIVATE_KEY environment variable required"

    config = load_config_from_env(chain_names)
    for name, chain_config in config.chains.items():
        print(f"{name}: {get_url_domain(chain_config.rpc_url)}, token bridge {chain_config.token_bridge}")

    orchestrator = TransferOrchestrator.from_config(config, private_keys={name: private_key for name in chain_names})
    return config, orchestrator


def print_result(result: BridgeResult):
    """Print a receipt or failure as a table."""
    rows = [
        ["State", " → ".join(s.value for s in result.states)],
        ["Source transactions", "\n".join(result.source_txids) or "-"],
        ["Wormhole message", str(result.message_id) if result.message_id else "-"],
        ["Destination transactions", "\n".join(result.destination_txids) or "-"],
    ]

    if result.quote:
        rows.append(["Relayer fee", result.quote.relayer_fee])
        rows.append(["Recipient receives", result.quote.destination_amount])

    if isinstance(result, TransferFailure):
        rows.append(["Failure", result.kind.value])
        rows.append(["Detail", result.detail])
        rows.append(["Resumable", "yes" if result.kind.is_resumable else "no"])
    else:
        rows.append(["Already completed", "yes" if result.already_completed else "no"])
        if result.wrapped_asset:
            rows.append(["Wrapped asset", result.wrapped_asset])

    print(tabulate(rows, tablefmt="simple"))


def print_recovered(recovered: RecoveredTransfer):
    rows = [
        ["Source", f"{recovered.source_txid} on {recovered.source_chain}"],
        ["Wormhole message", str(recovered.message_id)],
        ["Attested", "yes" if recovered.attestation else "not yet"],
    ]

    if recovered.body is not None:
        for field in fields(recovered.body):
            rows.append([field.name, getattr(recovered.body, field.name)])

    rows.append(["Destination", str(recovered.destination_chain) if recovered.destination_chain else "-"])
    rows.append(["Redeemed", {True: "yes", False: "no", None: "unknown"}[recovered.completed]])
    print(tabulate(rows, tablefmt="simple"))
