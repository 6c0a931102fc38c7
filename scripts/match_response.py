from __future__ import annotations

import argparse
from pathlib import Path
import sys

from loguru import logger

# Ensure project root is importable when running from scripts/
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from messenger.config import get_settings
from messenger.matcher import PRIMARY_THRESHOLD, SECONDARY_THRESHOLD, find_response, rank_responses
from messenger.responses import load_response_table


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Show how an utterance scores against the autoresponder table")
    parser.add_argument("utterance", type=str, help="Text the operator would send")
    parser.add_argument("--responses", type=str, default=str(settings.responses_path))
    parser.add_argument("--top-k", type=int, default=5)
    args = parser.parse_args()

    logger.remove()
    logger.add(sys.stderr, level=settings.log_level, format="{level} | {message}")

    path = Path(args.responses)
    if not path.exists():
        raise SystemExit(f"Response table not found: {path}")
    try:
        table = load_response_table(path)
    except ValueError as e:
        raise SystemExit(f"Response table is malformed: {e}")

    print(f"Top matches (primary>={PRIMARY_THRESHOLD:.2f}, secondary>={SECONDARY_THRESHOLD:.2f}):")
    for i, (question, sig) in enumerate(rank_responses(table, args.utterance, args.top_k), start=1):
        print(
            f"{i}. {question!r}  score={sig['score']:.4f}  "
            f"edit={sig['edit']:.4f} jaccard={sig['jaccard']:.4f} containment={sig['containment']:.4f}"
        )

    match = find_response(table, args.utterance)
    if match is None:
        print("Verdict: no match, a fallback phrase would be sent")
    else:
        print(f"Verdict: {match.strength.value} match on {match.question!r} ({len(match.answers)} answers)")


if __name__ == "__main__":
    main()
