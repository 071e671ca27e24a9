"""Provenance storage interface for extraction snapshots.

Every extraction run is persisted as one immutable `LinkSnapshot` keyed by
`(session_id, param_hash)`. A run with different parameters produces a
separate snapshot rather than mutating an earlier one, so stored links are
historical facts tagged with the kernel version and parameters that
produced them.

Writes are whole-snapshot. A conflicting write for an existing key is
resolved by the caller's `ConflictPolicy`; there is never a partially
written snapshot.

All interfaces are async-first so backends with real I/O can be dropped in
without changing callers.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from causalschema.link import CausalLink
from causalschema.metrics import RoundMetrics


class ConflictPolicy(str, Enum):
    """What to do when a snapshot for the same session and parameters exists."""

    OVERWRITE = "overwrite"
    """Replace the stored snapshot (last writer wins)."""

    SKIP = "skip"
    """Keep the stored snapshot and report that nothing was written."""

    ERROR = "error"
    """Raise instead of writing."""


class LinkSnapshot(BaseModel):
    """A fully formed extraction result for one session and parameter set.

    Attributes:
        session_id: Session the links were extracted from.
        kernel_version: Version string of the scoring semantics.
        kernel_params_json: Canonical JSON of the parameters used.
        param_hash: Truncated hex digest of `kernel_params_json`.
        extracted_at: Timezone-aware extraction time.
        links: Every node produced by the kernel and the merger.
        round_metrics: One entry per round that ran.
    """

    model_config = {"frozen": True}

    session_id: str
    kernel_version: str
    kernel_params_json: str
    param_hash: str = Field(min_length=1)
    extracted_at: datetime
    links: tuple[CausalLink, ...] = ()
    round_metrics: tuple[RoundMetrics, ...] = ()

    @field_validator("extracted_at")
    @classmethod
    def extracted_at_must_be_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.utcoffset() is None:
            raise ValueError("extracted_at must be timezone-aware")
        return value

    @property
    def key(self) -> tuple[str, str]:
        return (self.session_id, self.param_hash)


class ProvenanceStoreInterface(ABC):
    """Abstract interface for persisting extraction snapshots.

    Implementations must treat stored snapshots as immutable. Concurrent
    writes for different keys never conflict; concurrent writes for the
    same key are redundant and resolved by the policy passed to `write`.
    """

    @abstractmethod
    async def write(self, snapshot: LinkSnapshot, policy: ConflictPolicy = ConflictPolicy.OVERWRITE) -> bool:
        """Persist a snapshot.

        Args:
            snapshot: The snapshot to store.
            policy: How to resolve an existing snapshot with the same key.

        Returns:
            True if the snapshot was written, False if it was skipped.

        Raises:
            SnapshotExistsError: If a snapshot exists and policy is ERROR.
        """

    @abstractmethod
    async def get(self, session_id: str, param_hash: str) -> LinkSnapshot | None:
        """Retrieve the snapshot for a session and parameter hash, or None."""

    @abstractmethod
    async def latest(self, session_id: str) -> LinkSnapshot | None:
        """Return the most recently extracted snapshot for a session.

        Ties on `extracted_at` are broken by parameter hash so the answer is
        deterministic.
        """

    @abstractmethod
    async def list_param_hashes(self, session_id: str) -> list[str]:
        """Return the sorted parameter hashes stored for a session."""

    @abstractmethod
    async def has(self, session_id: str, param_hash: str) -> bool:
        """Return True if a snapshot exists for the key."""

    @abstractmethod
    async def count(self) -> int:
        """Return the total number of stored snapshots."""
