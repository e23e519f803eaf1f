"""Closed list of trivial Japanese tokens that must never count as new vocabulary.

The generator is told not to flag particles, copulas and the like, but it
still does; this list is the final word on it.
"""

from __future__ import annotations

import re

from app.modules.vocabulary.normalize import normalize_key


COMMON_TERMS: frozenset[str] = frozenset(
    {
        # particles
        "wa", "ga", "wo", "o", "no", "ni", "de", "to", "mo", "ka", "e", "ya",
        "kara", "made", "yo", "ne", "na", "he", "ba", "shi", "te", "nado",
        "dake", "shika", "bakari", "hodo", "kurai", "gurai",
        # copulas
        "da", "desu", "deshita", "datta", "nai", "masen",
        # basic verbs and their everyday forms
        "suru", "aru", "iru", "naru", "iku", "kuru", "miru", "iu", "omou",
        "shita", "shite", "sareta", "sareru", "dekiru", "natta", "natte",
        "ita", "imasu", "arimasu", "shimasu", "shimashita", "itta", "itte",
        "mita", "kita", "narimashita", "sa", "se", "su",
        # pronouns and demonstratives
        "watashi", "boku", "kare", "kanojo", "karera", "kore", "sore", "are",
        "dore", "kono", "sono", "ano", "dono", "koko", "soko", "asoko", "doko",
        # conjunctions and adverbs
        "soshite", "shikashi", "demo", "dakara", "sorede", "mata", "totemo",
        "sugoku", "motto", "mada", "yoku", "chotto",
        # basic nouns
        "koto", "mono", "toki", "hito", "naka", "ue", "mae", "ato",
        # sentence-final auxiliaries
        "mashita", "masu", "tai", "rashii", "sou",
    }
)

MARKERS = ("NEW", "REVIEW")

_PUNCTUATION = ".,!?;:()\"'“”‘’「」『』、。！？"
_MARKER = re.compile(r"\[(NEW|REVIEW)\]")
_MARKED_TOKEN = re.compile(r"\[(NEW|REVIEW)\]\s*(\S+)")
_MULTI_SPACE = re.compile(r"\s{2,}")


def is_common_term(token: str) -> bool:
    """True when ``token`` is a trivial word (punctuation, case and macrons ignored)."""
    return normalize_key(token.strip(_PUNCTUATION)) in COMMON_TERMS


def strip_markers(text: str) -> str:
    """Remove every marker and tidy the spacing left behind."""
    return _MULTI_SPACE.sub(" ", _MARKER.sub("", text or "")).strip()


def demote_common_markers(body: str) -> str:
    """Drop markers sitting on common terms; the word itself stays visible."""

    def _replace(match: re.Match) -> str:
        token = match.group(2)
        if is_common_term(token):
            return token
        return match.group(0)

    return _MARKED_TOKEN.sub(_replace, body or "")


def count_markers(body: str, marker: str = "NEW") -> int:
    return len(re.findall(rf"\[{marker}\]", body or ""))
