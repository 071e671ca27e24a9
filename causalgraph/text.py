"""Text features shared by the classifier, kernel and merger.

Everything here is a pure function of its arguments. Tokens are lowercase
alphanumeric runs of at least three characters with stopwords removed.
"""

import math
import re
from collections import Counter
from typing import Iterable, Optional

from pydantic import BaseModel

STOPWORDS = frozenset(
    """
    the a an and or but to of in on for with at by from up down out over under again further
    then once here there when where why how all any both each few more most other some such no
    nor not only own same so than too very can will just don should now you your yours we our
    ours i me my mine they them their theirs he him his she her hers it its is are was were be
    been being do does did have has had what if this that these those as into about maybe could
    would able like want kind sorta
    """.split()
)

# Content tokens that trigger cause/effect detection; overlap made mostly of these
# says little about whether two specific lines are related.
DETECTION_KEYWORDS = frozenset(
    """
    may try attempt search examine inspect look open pull push take grab move touch cast read listen
    sneak hide pick investigate attack use roll check please
    insight perception athletics acrobatics arcana deception history intimidation medicine nature
    performance persuasion religion stealth survival animal handling sleight hand
    see notice find learn realize spot smell hear feel remember recognize discover seems looks
    appears succeed fail manage force break works stuck blocked agree promise commit decide
    """.split()
)

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_PUNCT_RE = re.compile(r"[^a-z0-9\s]", re.IGNORECASE)
_YES_NO_RE = re.compile(
    r"^\s*(yes|yeah|yep|yup|sure|okay|ok|no|nope|nah|not really|not at all|not exactly)\b",
    re.IGNORECASE,
)


def normalize_name(text: str) -> str:
    """Lowercase, trim surrounding punctuation and collapse whitespace."""
    text = re.sub(r"^[^a-z0-9]+|[^a-z0-9]+$", "", text.lower().strip())
    return re.sub(r"\s+", " ", text)


def strip_punctuation(text: str) -> str:
    return _PUNCT_RE.sub("", text).strip()


def count_words(text: str) -> int:
    return len(text.split())


def word_tokens(text: str) -> list[str]:
    """Lowercase words with punctuation removed, in order."""
    return strip_punctuation(text).lower().split()


def content_tokens(text: str) -> set[str]:
    return {t for t in _TOKEN_RE.findall(text.lower()) if len(t) > 2 and t not in STOPWORDS}


def is_yes_no_answer(text: str) -> bool:
    return bool(_YES_NO_RE.match(text))


def hill(distance: float, tau: float, p: float) -> float:
    """Hill distance kernel: 1 at distance 0, 0.5 at `tau`, decreasing in distance.

    Args:
        distance: Distance in lines (or between node centers).
        tau: Half-strength distance.
        p: Steepness exponent.

    Returns:
        Score in (0, 1].
    """
    if distance <= 0:
        return 1.0
    return 1.0 / (1.0 + (distance / tau) ** p)


class CorpusStats(BaseModel):
    """Document frequencies of content tokens over one session's lines."""

    model_config = {"frozen": True}

    doc_count: int
    df: dict[str, int]

    @classmethod
    def build(cls, texts: Iterable[str]) -> "CorpusStats":
        df: Counter[str] = Counter()
        n = 0
        for text in texts:
            n += 1
            df.update(content_tokens(text))
        return cls(doc_count=max(1, n), df=dict(df))

    def idf(self, token: str) -> float:
        """Smoothed IDF, always >= 1."""
        return math.log((self.doc_count + 1) / (self.df.get(token, 0) + 1)) + 1.0


class LexicalSignal(BaseModel):
    """Overlap between two texts."""

    model_config = {"frozen": True}

    score: float = 0.0
    keyword_share: float = 0.0
    idf_weighted: bool = False
    shared: tuple[str, ...] = ()


def lexical_overlap(
    text_a: str,
    text_b: str,
    stats: Optional[CorpusStats] = None,
    keyword_dominance: float = 0.5,
) -> LexicalSignal:
    """Token-set Jaccard overlap between two texts.

    When corpus stats are given and detection keywords make up at least
    `keyword_dominance` of the shared tokens, each token is weighted by its
    IDF, so overlap on common trigger words counts for less than overlap on
    rare content words.
    """
    a = content_tokens(text_a)
    b = content_tokens(text_b)
    shared = a & b
    if not shared:
        return LexicalSignal()
    union = a | b
    keyword_share = len(shared & DETECTION_KEYWORDS) / len(shared)
    if stats is not None and keyword_share >= keyword_dominance:
        shared_w = sum(stats.idf(t) for t in shared)
        union_w = sum(stats.idf(t) for t in union)
        return LexicalSignal(
            score=shared_w / union_w,
            keyword_share=keyword_share,
            idf_weighted=True,
            shared=tuple(sorted(shared)),
        )
    return LexicalSignal(
        score=len(shared) / len(union),
        keyword_share=keyword_share,
        shared=tuple(sorted(shared)),
    )
