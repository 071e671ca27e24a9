"""Bundle DM yes/no prompts with the player's short answer.

A DM line that asks a yes/no question ("Are you sure?", "Did you check
the door?") followed within two lines by a player's bare "yes" or "no"
carries one intent between the two lines, and neither line says much on
its own. `bundle_yes_no` pairs them into a single request anchored at the
answer and reports both lines as consumed so the kernel skips them
during ordinary detection.
"""

import re
from typing import Sequence

from pydantic import BaseModel

from causalgraph.actors import is_dm_speaker, match_actor
from causalgraph.text import is_yes_no_answer
from causalschema.transcript import Actor, TranscriptLine

ANSWER_WINDOW = 2

_PROMPT_RE = re.compile(
    r"(are you|do you|did you|can you|could you|would you|is it|was it|did that|right\?|correct\?)",
    re.IGNORECASE,
)
_YES_RE = re.compile(r"^\s*yes\b", re.IGNORECASE)


class YesNoBundle(BaseModel):
    """A DM yes/no prompt and the player answer it received.

    Attributes:
        session_id: Session the lines belong to.
        actor_id: Actor who answered.
        prompt_index: Line index of the DM prompt.
        answer_index: Line index of the answer.
        text: Prompt and normalized answer, e.g.
            `DM prompt: Are you sure? | PC answer: YES`.
    """

    model_config = {"frozen": True}

    session_id: str
    actor_id: str
    prompt_index: int
    answer_index: int
    text: str


class BundleResult(BaseModel):
    model_config = {"frozen": True}

    bundles: tuple[YesNoBundle, ...] = ()
    consumed: frozenset[int] = frozenset()


def is_yes_no_prompt(text: str) -> bool:
    return "?" in text and bool(_PROMPT_RE.search(text))


def bundle_yes_no(
    session_id: str,
    transcript: Sequence[TranscriptLine],
    actors: Sequence[Actor],
    dm_names: frozenset[str],
) -> BundleResult:
    """Pair DM yes/no prompts with the first player answer that follows.

    Only the two lines after a prompt are searched. DM lines are skipped,
    the speaker must match a known actor and the reply must read as a
    yes/no answer. Answers other than a leading "yes" normalize to NO.

    Args:
        session_id: Session being extracted.
        transcript: Lines in order.
        actors: Known participants; unmatched speakers never answer.
        dm_names: Lowercase DM author names.

    Returns:
        The bundles in prompt order and the set of consumed line indices.
    """
    bundles: list[YesNoBundle] = []
    consumed: set[int] = set()
    for i, prompt in enumerate(transcript):
        if not is_dm_speaker(prompt.author_name, dm_names) or not is_yes_no_prompt(prompt.content):
            continue
        for reply in transcript[i + 1 : i + 1 + ANSWER_WINDOW]:
            if is_dm_speaker(reply.author_name, dm_names):
                continue
            actor = match_actor(reply.author_name, actors)
            if actor is None or not is_yes_no_answer(reply.content):
                continue
            answer = "YES" if _YES_RE.match(reply.content) else "NO"
            bundles.append(
                YesNoBundle(
                    session_id=session_id,
                    actor_id=actor.actor_id,
                    prompt_index=prompt.line_index,
                    answer_index=reply.line_index,
                    text=f"DM prompt: {prompt.content} | PC answer: {answer}",
                )
            )
            consumed.update((prompt.line_index, reply.line_index))
            break
    return BundleResult(bundles=tuple(bundles), consumed=frozenset(consumed))
