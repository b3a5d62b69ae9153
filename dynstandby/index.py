from __future__ import annotations

from .models import WorkerObject


def owner_index(worker: WorkerObject, api_version: str, kind: str) -> set[str]:
    """Names of the fleets that control ``worker``.

    Only the controlling owner reference counts, and only when it points at
    the fleet kind we reconcile.
    """
    owner = worker.metadata.controller_ref()
    if owner is None:
        return set()
    if owner.api_version != api_version or owner.kind != kind:
        return set()
    return {owner.name}
