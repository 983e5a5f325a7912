"""
Application service: decide what a sync cycle must do.

Update is full-replace, not a per-key patch: the sink overwrites its whole
payload with the desired one, so keys only present on the observed side are
dropped. The size check catches those even though the value loop only walks
the desired keys.
"""

from typing import Optional

from secret_sync.domain.entities.secret import SecretPayload, SyncDecision


def decide(desired: SecretPayload, observed: Optional[SecretPayload]) -> SyncDecision:
    if observed is None:
        return SyncDecision.CREATE
    if len(desired) != len(observed):
        return SyncDecision.UPDATE
    for key, value in desired.items():
        if key not in observed or observed[key] != value:
            return SyncDecision.UPDATE
    return SyncDecision.NOOP
