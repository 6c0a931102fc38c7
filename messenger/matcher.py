from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from .similarity import similarity_signals
from .states import ConversationKind, MatchStrength


PRIMARY_THRESHOLD = 0.70  # confident match
SECONDARY_THRESHOLD = 0.55  # still answered, kept separate for future tuning

DIRECT_FALLBACKS: Tuple[str, ...] = ("🤔", "হুম", "আচ্ছা", "ওহ")
GROUP_FALLBACKS: Tuple[str, ...] = ("😑", "🙃", "হুম")
PERSONA_REACTIONS: Tuple[str, ...] = ("🙃", "😑", "😌", "🤫", "😉", "😘")


@dataclass(frozen=True)
class Match:
    question: str
    answers: Tuple[str, ...]
    score: float
    strength: MatchStrength


def find_response(table: Mapping[str, Sequence[str]], utterance: str) -> Optional[Match]:
    """Return the best-scoring table entry for ``utterance`` or None.

    Entries are scored with the max of the edit, token-overlap and
    containment signals. The first entry wins ties.
    """
    best_question: Optional[str] = None
    best_score = 0.0
    for question, answers in table.items():
        score = similarity_signals(utterance, question)["score"]
        if score > best_score:
            best_score = score
            best_question = question

    if best_question is None:
        return None
    if best_score >= PRIMARY_THRESHOLD:
        strength = MatchStrength.PRIMARY
    elif best_score >= SECONDARY_THRESHOLD:
        strength = MatchStrength.SECONDARY
    else:
        logger.debug(f"matcher_miss | best={best_question!r} score={best_score:.3f}")
        return None
    return Match(
        question=best_question,
        answers=tuple(table[best_question]),
        score=best_score,
        strength=strength,
    )


def rank_responses(
    table: Mapping[str, Sequence[str]], utterance: str, limit: int = 5
) -> List[Tuple[str, Dict[str, float]]]:
    scored = [(q, similarity_signals(utterance, q)) for q in table]
    # sorted() is stable, so equal scores keep table order
    scored.sort(key=lambda item: item[1]["score"], reverse=True)
    return scored[: max(0, limit)]


def fallback_phrases(kind: ConversationKind) -> Tuple[str, ...]:
    return GROUP_FALLBACKS if kind == ConversationKind.GROUP else DIRECT_FALLBACKS


def choose_reply(match: Optional[Match], kind: ConversationKind, rng: Optional[random.Random] = None) -> str:
    rng = rng or random
    if match is not None and match.answers:
        return rng.choice(match.answers)
    return rng.choice(fallback_phrases(kind))


def choose_reaction(rng: Optional[random.Random] = None) -> str:
    return (rng or random).choice(PERSONA_REACTIONS)
