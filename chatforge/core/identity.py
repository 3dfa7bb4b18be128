"""Creator-question classifier.

Questions such as "who made you?" are answered with a fixed branding
response instead of whatever a provider would say. The check runs before
any routing, against a table of language-tagged regular expressions.

Examples:
    >>> classify_identity("Who built you?")
    IdentityAnswer(language='en', text='...')
    >>> classify_identity("What is the capital of Peru?")
    RouteToProvider()

Tests:
    - tests/unit/test_identity.py
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from chatforge.prompts.identity import IDENTITY_ANSWERS

# Language code -> patterns matched against the stripped user text
IDENTITY_PATTERNS: dict[str, tuple[re.Pattern[str], ...]] = {
    "en": tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"who\s+(created|made|built|developed|designed)\s+you",
            r"who\s+(is\s+your|are\s+your)\s+(creator|maker|developer|builder)s?",
            r"who\s+are\s+you\s+(created|made|built)\s+by",
            r"what\s+(company|organization|team)\s+(created|made|built|developed)\s+you",
            r"who\s+is\s+behind\s+you",
            r"who\s+owns\s+you",
            r"what\s+(is\s+your|are\s+your)\s+(origin|source)",
            r"who\s+(founded|started)\s+you",
            r"what\s+(company|organization)\s+do\s+you\s+belong\s+to",
            r"who\s+is\s+your\s+(parent|owner)",
        )
    ),
    "es": tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"qui[eé]n\s+te\s+(cre[oó]|hizo|construy[oó]|desarroll[oó]|dise[nñ][oó])",
            r"qui[eé]n\s+es\s+tu\s+(creador|due[nñ]o|desarrollador)",
            r"qu[eé]\s+empresa\s+te\s+(cre[oó]|hizo|desarroll[oó])",
        )
    ),
    "fr": tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"qui\s+t'a\s+(cr[ée]{2}|cr[ée]e?|fait|construit|d[ée]velopp[ée])",
            r"qui\s+(est|sont)\s+ton\s+(cr[ée]ateur|propri[ée]taire|d[ée]veloppeur)",
            r"quelle\s+(entreprise|soci[ée]t[ée])\s+t'a\s+(cr[ée]{2}|fait|d[ée]velopp[ée])",
        )
    ),
    "de": tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"wer\s+hat\s+dich\s+(erschaffen|gemacht|gebaut|entwickelt|erstellt)",
            r"wer\s+ist\s+dein\s+(sch[öo]pfer|entwickler|besitzer|ersteller)",
            r"welche\s+firma\s+hat\s+dich\s+(erschaffen|gemacht|gebaut|entwickelt)",
        )
    ),
    "hi": tuple(
        re.compile(p, re.IGNORECASE)
        for p in (
            r"(tumhe|tumko|aapko|apko)\s+(kisne|kis\s+ne)\s+(banaya|bnaya)",
            r"तुम्हें\s+किसने\s+बनाया",
            r"आपको\s+किसने\s+बनाया",
        )
    ),
}


@dataclass(frozen=True)
class IdentityAnswer:
    """Fixed answer for a creator question."""

    language: str
    text: str


@dataclass(frozen=True)
class RouteToProvider:
    """Not a creator question; route normally."""


IdentityResult = Union[IdentityAnswer, RouteToProvider]


def match_language(text: str) -> str | None:
    """Language tag of the first pattern set matching the text, or None."""
    stripped = text.strip()
    if not stripped:
        return None
    for language, patterns in IDENTITY_PATTERNS.items():
        if any(p.search(stripped) for p in patterns):
            return language
    return None


def classify_identity(text: str | None, brand: str = "ChatForge") -> IdentityResult:
    """Decide whether a prompt is a creator question.

    Args:
        text: User prompt.
        brand: Product name used in the answer.

    Returns:
        IdentityAnswer with the branded response, or RouteToProvider.
    """
    language = match_language(text or "")
    if language is None:
        return RouteToProvider()
    template = IDENTITY_ANSWERS.get(language, IDENTITY_ANSWERS["en"])
    return IdentityAnswer(language=language, text=template.format(brand=brand))
