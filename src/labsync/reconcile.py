"""Reconciliation of local and remote snapshots.

Precedence rule: on an id collision the remote entity wins; local entities
are only ever added. The functions here are pure: they neither mutate their
arguments nor perform I/O.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

from .models import EntityKind, SystemData


@dataclass
class MergeReport:
    """What a merge did, per snapshot."""

    adopted_remote: int = 0
    kept_local: int = 0
    overridden: int = 0
    # "collection/id" of local entities replaced by a differing remote copy
    overridden_ids: List[str] = field(default_factory=list)


def merge_collections(local: Sequence[Any], remote: Sequence[Any]) -> List[Any]:
    """Merge one collection: the remote list, then local entities absent remotely."""
    merged = list(remote)
    remote_ids = {entity.id for entity in remote}
    merged.extend(entity for entity in local if entity.id not in remote_ids)
    return merged


def merge_snapshots(local: SystemData, remote: SystemData) -> SystemData:
    """Merge two snapshots collection by collection with remote precedence."""
    return SystemData(**{
        kind.attr: merge_collections(local.collection(kind), remote.collection(kind))
        for kind in EntityKind
    })


def reconcile(local: SystemData, remote: SystemData) -> Tuple[SystemData, MergeReport]:
    """Merge two snapshots and report what happened to local entities.

    Returns:
        Tuple of (merged snapshot, report)
    """
    report = MergeReport()
    for kind in EntityKind:
        remote_by_id: Dict[str, Any] = {e.id: e for e in remote.collection(kind)}
        report.adopted_remote += len(remote_by_id)
        for entity in local.collection(kind):
            remote_entity = remote_by_id.get(entity.id)
            if remote_entity is None:
                report.kept_local += 1
            elif remote_entity != entity:
                report.overridden += 1
                report.overridden_ids.append(f"{kind.value}/{entity.id}")
    return merge_snapshots(local, remote), report


def is_empty_snapshot(data: SystemData) -> bool:
    """True when all five collections are empty."""
    return data.is_empty()
