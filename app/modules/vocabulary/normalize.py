"""Script-independent keys for vocabulary matching."""

from __future__ import annotations

import re
import unicodedata

_WHITESPACE = re.compile(r"\s+")


def fold_diacritics(text: str) -> str:
    """Fold accented Latin letters to their base letter (ō -> o, É -> E).

    Combining marks attached to non-Latin characters are kept, so kana
    voicing marks survive (が stays が).
    """
    out: list[str] = []
    for ch in unicodedata.normalize("NFKD", text):
        if unicodedata.combining(ch) and out and out[-1].isascii():
            continue
        out.append(ch)
    return unicodedata.normalize("NFC", "".join(out))


def normalize_key(word: str) -> str:
    """Matching key for a vocabulary word: diacritic-folded, case-folded, single-spaced."""
    folded = fold_diacritics(word or "").casefold()
    return _WHITESPACE.sub(" ", folded).strip()
