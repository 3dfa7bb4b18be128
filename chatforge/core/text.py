"""Cheap text helpers used instead of model calls.

Examples:
    >>> heuristic_summary("One. Two. Three. Four. Five. Six. Seven.")
    ('One. Two. Three.', ['Four.', 'Five.', 'Six.'])
"""

from __future__ import annotations

import re

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BREAK = re.compile(r"(?<=\.)\s+")

SUMMARY_SENTENCES = 3
KEY_POINT_SENTENCES = 3


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace to single spaces and strip."""
    return _WHITESPACE.sub(" ", text).strip()


def split_sentences(text: str, limit: int | None = None) -> list[str]:
    """Split on whitespace following a period."""
    sentences = [s for s in _SENTENCE_BREAK.split(text.strip()) if s]
    return sentences[:limit] if limit is not None else sentences


def heuristic_summary(text: str) -> tuple[str, list[str]]:
    """Extractive summary and key points.

    The summary is the first three sentences; key points are the next three.

    Returns:
        (summary, key_points); both empty for empty text.
    """
    if not text or not text.strip():
        return "", []
    sentences = split_sentences(text, SUMMARY_SENTENCES + KEY_POINT_SENTENCES)
    summary = " ".join(sentences[:SUMMARY_SENTENCES])
    key_points = [collapse_whitespace(s) for s in sentences[SUMMARY_SENTENCES:]]
    return summary, [p for p in key_points if p]
