"""Exception types raised by the causal extraction engine.

Input-shape and merge-consistency problems are caller programming errors
and subclass `ValueError`, matching how parameter validation surfaces
through pydantic. A line that matches no pattern is never an error.
"""


class CausalGraphError(Exception):
    """Base class for causal extraction errors."""


class InputShapeError(CausalGraphError, ValueError):
    """Transcript, mask or regime spans are malformed.

    Raised for mask/transcript length mismatches, out-of-order line indexes
    and regime spans that fall outside the transcript.
    """


class MergeConsistencyError(CausalGraphError, ValueError):
    """A composite references a node that is missing, reused, or cyclic."""


class SnapshotExistsError(CausalGraphError):
    """A snapshot for the same session and parameter hash is already stored."""

    def __init__(self, session_id: str, param_hash: str):
        super().__init__(f"snapshot already stored for session {session_id!r} with params {param_hash}")
        self.session_id = session_id
        self.param_hash = param_hash
