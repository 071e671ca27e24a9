"""Speaker attribution: which actor said a line, and whether it was the DM."""

import re
from typing import Iterable, Optional, Sequence

from causalgraph.text import normalize_name
from causalschema.transcript import Actor

_DM_WORD_RE = re.compile(r"\bdm\b", re.IGNORECASE)


def match_actor(author_name: str, actors: Sequence[Actor]) -> Optional[Actor]:
    """Find the actor whose name or alias best matches an author field.

    A name matches when its normalized form equals, or is contained in, the
    normalized author. The longest matching name wins; ties go to the
    earlier actor.

    Args:
        author_name: Author field of a transcript line.
        actors: Known participants.

    Returns:
        The best matching actor, or None.
    """
    author = normalize_name(author_name)
    if not author:
        return None
    best: Optional[Actor] = None
    best_len = 0
    for actor in actors:
        for name in actor.names():
            norm = normalize_name(name)
            if norm and norm in author and len(norm) > best_len:
                best = actor
                best_len = len(norm)
    return best


def attribute_actor(author_name: str, actors: Sequence[Actor]) -> str:
    """Actor id for a line, or the normalized author name when no actor matches."""
    actor = match_actor(author_name, actors)
    if actor is not None:
        return actor.actor_id
    return normalize_name(author_name)


def detect_dm_speaker(speaker_names: Iterable[str]) -> Optional[str]:
    """Return the first speaker name containing the word "DM"."""
    for name in speaker_names:
        if _DM_WORD_RE.search(name):
            return name
    return None


def build_dm_name_set(detected: Optional[str] = None, extra: Iterable[str] = ()) -> frozenset[str]:
    """Effective set of lowercase DM author names.

    Priority: the name detected in the transcript, then caller-supplied
    names (normally `GraphParams.dm_speakers`). Falls back to {"dm"}.
    """
    if detected:
        return frozenset({detected.lower().strip()})
    names = {n.strip().lower() for n in extra if n.strip()}
    return frozenset(names) if names else frozenset({"dm"})


def parse_dm_speakers(value: str) -> tuple[str, ...]:
    """Split a comma-separated list of DM author names."""
    return tuple(n.strip() for n in value.split(",") if n.strip())


def is_dm_speaker(author_name: str, dm_names: frozenset[str]) -> bool:
    return author_name.lower().strip() in dm_names
