"""Grouping of hashed catalog entries into duplicate sets.

Shared by the server-side dedup job and the client-orchestrated variant so
both pick the same representative for a group.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass
class DuplicateGroup:
    digest: str
    keep: int
    remove: List[int] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"digest": self.digest, "keep": self.keep, "remove": list(self.remove)}


def group_duplicates(entries: Iterable[Tuple[int, Optional[str]]]) -> List[DuplicateGroup]:
    """Group ``(id, digest)`` pairs by digest.

    ``entries`` must already be in the stable order used to pick the
    representative (oldest first); the first member of each group is kept.
    Entries without a digest (failed fetch or hash) never join a group.
    """
    members: Dict[str, List[int]] = {}
    for entry_id, digest in entries:
        if not digest:
            continue
        members.setdefault(digest, []).append(entry_id)

    groups: List[DuplicateGroup] = []
    for digest, ids in members.items():
        if len(ids) <= 1:
            continue
        groups.append(DuplicateGroup(digest=digest, keep=ids[0], remove=ids[1:]))
    return groups


def ids_to_delete(groups: Iterable[DuplicateGroup]) -> List[int]:
    result: List[int] = []
    for group in groups:
        result.extend(group.remove)
    return result
