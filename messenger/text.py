from __future__ import annotations

import unicodedata
from typing import Optional, Set

_ZERO_WIDTH = {"\u200c", "\u200d"}


def _is_punct_or_symbol(ch: str) -> bool:
    return unicodedata.category(ch)[0] in ("P", "S")


def normalize(text: Optional[str]) -> str:
    """Canonical form used for every text comparison.

    Lower-cases, drops ZWNJ/ZWJ, turns punctuation and symbols into spaces
    and collapses whitespace. Never fails; ``normalize(normalize(x))`` equals
    ``normalize(x)``.
    """
    if not text:
        return ""
    low = text.lower()
    chars = []
    for ch in low:
        if ch in _ZERO_WIDTH:
            continue
        chars.append(" " if _is_punct_or_symbol(ch) else ch)
    return " ".join("".join(chars).split())


def tokenize(text: Optional[str]) -> Set[str]:
    return {tok for tok in normalize(text).split(" ") if tok}
