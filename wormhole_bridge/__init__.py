"""Wormhole token bridge transfer orchestration.

Drive asset attestations and token transfers across chains connected by
the Wormhole token bridge:

1. **Source phase** — sign and submit ``attestToken()`` or ``transferTokens()``
   on the source chain
2. **Attestation phase** — poll for the guardian-signed VAA of the emitted message
3. **Destination phase** — ``createWrapped()`` or ``completeTransfer()`` on the
   destination chain, or wait for a relayer/executor to do it

The state machine lives in :py:mod:`wormhole_bridge.orchestrator`. Chain access
goes through the capability protocols in :py:mod:`wormhole_bridge.endpoint`,
with an EVM backend in :py:mod:`wormhole_bridge.evm`.
"""
