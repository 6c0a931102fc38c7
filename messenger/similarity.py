from __future__ import annotations

from typing import Dict

from .text import normalize, tokenize


def edit_similarity(str1: str, str2: str) -> float:
    """Jaro-Winkler similarity in [0, 1]; 1.0 for identical strings."""
    if str1 == str2:
        return 1.0
    s1 = (str1 or "").lower().strip()
    s2 = (str2 or "").lower().strip()
    if s1 == s2:
        return 1.0

    window = max(len(s1), len(s2)) // 2 - 1
    matched1 = [False] * len(s1)
    matched2 = [False] * len(s2)
    matches = 0

    for i, ch in enumerate(s1):
        start = max(0, i - window)
        end = min(i + window + 1, len(s2))
        for j in range(start, end):
            if matched2[j] or s2[j] != ch:
                continue
            matched1[i] = matched2[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    # Walk both matched subsequences in order and count positional mismatches.
    mismatches = 0
    k = 0
    for i, ch in enumerate(s1):
        if not matched1[i]:
            continue
        while not matched2[k]:
            k += 1
        if ch != s2[k]:
            mismatches += 1
        k += 1
    transpositions = mismatches / 2

    jaro = (matches / len(s1) + matches / len(s2) + (matches - transpositions) / matches) / 3

    prefix = 0
    for a, b in zip(s1[:4], s2[:4]):
        if a != b:
            break
        prefix += 1

    return jaro + 0.1 * prefix * (1 - jaro)


def jaccard_similarity(a: str, b: str) -> float:
    set_a = tokenize(a)
    set_b = tokenize(b)
    if not set_a or not set_b:
        return 0.0
    inter = len(set_a & set_b)
    return inter / (len(set_a) + len(set_b) - inter)


def containment_similarity(text: str, pattern: str) -> float:
    """Score how well ``pattern`` is contained in ``text``.

    A pattern that appears verbatim inside a longer text scores between 0.7
    and 0.95 depending on how much of the text it covers.
    """
    nt = normalize(text)
    np_ = normalize(pattern)
    if not nt or not np_:
        return 0.0
    if nt == np_:
        return 1.0
    if np_ in nt:
        return min(0.95, max(len(np_) / (len(nt) + 0.0001), 0.7))
    return 0.0


def similarity_signals(utterance: str, question: str) -> Dict[str, float]:
    """Compute every similarity signal between an utterance and a question.

    Signals:
    - edit: Jaro-Winkler over the normalized strings
    - jaccard: token-set overlap
    - containment: question found inside the utterance
    - score: max of the three
    """
    nu = normalize(utterance)
    nq = normalize(question)
    edit = edit_similarity(nu, nq)
    jac = jaccard_similarity(nu, nq)
    cont = containment_similarity(nu, nq)
    return {
        "edit": edit,
        "jaccard": jac,
        "containment": cont,
        "score": max(edit, jac, cont),
    }
