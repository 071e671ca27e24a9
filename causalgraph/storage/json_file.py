"""JSON file-based implementation of ProvenanceStoreInterface.

Each snapshot is one file in a directory, named from its session id and
parameter hash::

    <directory>/<quoted session id>__<param hash>.json

Files are written to a temporary name in the same directory and then
renamed over the target, so readers never see a partial snapshot.
"""

import os
import tempfile
from pathlib import Path
from urllib.parse import quote, unquote

from causalgraph.errors import SnapshotExistsError
from causalgraph.logging import setup_logging
from causalschema.storage import ConflictPolicy, LinkSnapshot, ProvenanceStoreInterface

SEPARATOR = "__"


class JsonFileProvenanceStore(ProvenanceStoreInterface):
    """Directory of JSON snapshot files.

    Attributes:
        directory: Directory holding the snapshot files. Created on first write.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.logger = setup_logging()

    def _path(self, session_id: str, param_hash: str) -> Path:
        return self.directory / f"{quote(session_id, safe='')}{SEPARATOR}{param_hash}.json"

    def _keys(self) -> list[tuple[str, str]]:
        if not self.directory.is_dir():
            return []
        keys = []
        for path in sorted(self.directory.glob("*.json")):
            quoted, sep, param_hash = path.stem.rpartition(SEPARATOR)
            if sep:
                keys.append((unquote(quoted), param_hash))
        return keys

    def _read(self, path: Path) -> LinkSnapshot:
        with open(path, "r", encoding="utf-8") as f:
            return LinkSnapshot.model_validate_json(f.read())

    async def write(self, snapshot: LinkSnapshot, policy: ConflictPolicy = ConflictPolicy.OVERWRITE) -> bool:
        path = self._path(snapshot.session_id, snapshot.param_hash)
        if path.exists():
            if policy == ConflictPolicy.ERROR:
                raise SnapshotExistsError(snapshot.session_id, snapshot.param_hash)
            if policy == ConflictPolicy.SKIP:
                self.logger.info({"message": "Snapshot file exists, skipping", "path": str(path)})
                return False

        self.directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(snapshot.model_dump_json(indent=2))
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self.logger.info(
            {
                "message": "Wrote snapshot",
                "path": str(path),
                "links": len(snapshot.links),
                "kernel_version": snapshot.kernel_version,
            }
        )
        return True

    async def get(self, session_id: str, param_hash: str) -> LinkSnapshot | None:
        path = self._path(session_id, param_hash)
        if not path.is_file():
            return None
        return self._read(path)

    async def latest(self, session_id: str) -> LinkSnapshot | None:
        snapshots = [self._read(self._path(sid, h)) for sid, h in self._keys() if sid == session_id]
        if not snapshots:
            return None
        return max(snapshots, key=lambda s: (s.extracted_at, s.param_hash))

    async def list_param_hashes(self, session_id: str) -> list[str]:
        return sorted(h for sid, h in self._keys() if sid == session_id)

    async def has(self, session_id: str, param_hash: str) -> bool:
        return self._path(session_id, param_hash).is_file()

    async def count(self) -> int:
        return len(self._keys())
