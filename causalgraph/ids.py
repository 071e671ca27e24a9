"""Deterministic node identifiers.

IDs are pure functions of the session and anchor indices, so re-running
extraction on unchanged input yields identical IDs.
"""

import hashlib


def link_id(session_id: str, cause_index: int, effect_index: int) -> str:
    return f"L:{session_id}:{cause_index}:{effect_index}"


def cause_singleton_id(session_id: str, line_index: int) -> str:
    return f"S:cause:{session_id}:{line_index}"


def effect_singleton_id(session_id: str, line_index: int) -> str:
    return f"S:effect:{session_id}:{line_index}"


def composite_id(session_id: str, level: int, start: int, end: int, left_id: str, right_id: str) -> str:
    """ID of a composite formed from two ordered children.

    The digest disambiguates composites that share a level and span.
    """
    digest = hashlib.sha256(f"{left_id}|{right_id}".encode("utf-8")).hexdigest()[:10]
    return f"C{level}:{session_id}:{start}-{end}:{digest}"
