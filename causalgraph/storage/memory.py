"""In-memory provenance store for testing and development.

Snapshots live in a dictionary keyed by `(session_id, param_hash)` and are
lost when the process exits.
"""

from causalgraph.errors import SnapshotExistsError
from causalgraph.logging import setup_logging
from causalschema.storage import ConflictPolicy, LinkSnapshot, ProvenanceStoreInterface

logger = setup_logging()


class InMemoryProvenanceStore(ProvenanceStoreInterface):
    """Dictionary-backed snapshot store."""

    def __init__(self) -> None:
        self._snapshots: dict[tuple[str, str], LinkSnapshot] = {}

    async def write(self, snapshot: LinkSnapshot, policy: ConflictPolicy = ConflictPolicy.OVERWRITE) -> bool:
        if snapshot.key in self._snapshots:
            if policy == ConflictPolicy.ERROR:
                raise SnapshotExistsError(snapshot.session_id, snapshot.param_hash)
            if policy == ConflictPolicy.SKIP:
                logger.info({"message": "Snapshot exists, skipping", "key": snapshot.key})
                return False
        self._snapshots[snapshot.key] = snapshot
        return True

    async def get(self, session_id: str, param_hash: str) -> LinkSnapshot | None:
        return self._snapshots.get((session_id, param_hash))

    async def latest(self, session_id: str) -> LinkSnapshot | None:
        matching = [s for (sid, _), s in self._snapshots.items() if sid == session_id]
        if not matching:
            return None
        return max(matching, key=lambda s: (s.extracted_at, s.param_hash))

    async def list_param_hashes(self, session_id: str) -> list[str]:
        return sorted(h for sid, h in self._snapshots if sid == session_id)

    async def has(self, session_id: str, param_hash: str) -> bool:
        return (session_id, param_hash) in self._snapshots

    async def count(self) -> int:
        return len(self._snapshots)
