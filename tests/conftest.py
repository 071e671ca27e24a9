"""Test fixtures for causal extraction.

This module provides:
- A transcript factory that turns (author, content) pairs into TranscriptLines
- A sample exploration scene with causes, pattern effects, a roll and a
  DM-proximity effect, used by kernel, merger and orchestrator tests
- Actors for the sample scene
- A fixed extraction clock so snapshots are reproducible
- In-memory and JSON-file provenance stores
"""

from datetime import datetime, timezone
from typing import Sequence

import pytest

from causalgraph.clock import ExtractionClock
from causalgraph.storage import InMemoryProvenanceStore, JsonFileProvenanceStore
from causalschema.transcript import Actor, TranscriptLine

SESSION_ID = "session-1"

SAMPLE_SCENE: tuple[tuple[str, str], ...] = (
    ("DM", "The heavy oak door at the end of the hall is shut tight."),
    ("Alice", "I try to open the oak door."),
    ("DM", "Roll me an athletics check."),
    ("Alice", "That's a 17."),
    ("DM", "The door gives way and swings open."),
    ("Bob", "Can I search the room beyond the door?"),
    ("DM", "You find a small silver key under the rug."),
    ("Bob", "I pick up the silver key."),
    ("DM", "It looks like it fits the chest in the corner."),
    ("Alice", "Let's open the chest with the key."),
    ("DM", "The chest opens and you see a glowing map inside."),
    ("Bob", "Please let me read the map."),
    ("DM", "You learn that the map shows a hidden passage."),
    ("Alice", "Could we follow the hidden passage tonight?"),
    ("DM", "Sure, the passage leads down into darkness."),
)


def make_transcript(pairs: Sequence[tuple[str, str]], start_ms: int = 1_700_000_000_000) -> list[TranscriptLine]:
    """Build transcript lines from (author, content) pairs, one second apart."""
    return [
        TranscriptLine(line_index=i, author_name=author, content=content, timestamp_ms=start_ms + i * 1000)
        for i, (author, content) in enumerate(pairs)
    ]


@pytest.fixture
def lines():
    """The transcript factory, for tests that build their own scenes."""
    return make_transcript


@pytest.fixture
def session_id() -> str:
    return SESSION_ID


@pytest.fixture
def sample_transcript() -> list[TranscriptLine]:
    return make_transcript(SAMPLE_SCENE)


@pytest.fixture
def actors() -> list[Actor]:
    return [
        Actor(actor_id="pc-alice", canonical_name="Alice", aliases=("Alice the Bold",)),
        Actor(actor_id="pc-bob", canonical_name="Bob", aliases=("Bobby",)),
    ]


@pytest.fixture
def fixed_clock() -> ExtractionClock:
    return ExtractionClock(now=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def memory_store() -> InMemoryProvenanceStore:
    return InMemoryProvenanceStore()


@pytest.fixture
def json_store(tmp_path) -> JsonFileProvenanceStore:
    return JsonFileProvenanceStore(tmp_path / "snapshots")


@pytest.fixture(autouse=True)
def clear_dm_speaker_env(monkeypatch) -> None:
    """Keep a DM override in the developer's shell out of the tests."""
    monkeypatch.delenv("CAUSALGRAPH_DM_SPEAKER", raising=False)
