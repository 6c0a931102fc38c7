from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict

from loguru import logger

from messenger.config import get_settings
from messenger.manager import Messenger
from messenger.models import OPERATOR_ID, Conversation
from messenger.persistence import JsonPersistence
from messenger.responses import ResponseCache
from messenger.scheduler import LoopScheduler, VirtualScheduler
from messenger.store import ConversationStore


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    p = argparse.ArgumentParser(description="Send messages into a simulated conversation and print the transcript")
    p.add_argument("messages", nargs="*", help="Message texts to send, in order")
    p.add_argument("--conversation", type=str, default=settings.autoresponder_id, help="Conversation id (contact id or group id)")
    p.add_argument("--as", dest="sender", type=str, default=OPERATOR_ID, help="Sender id; defaults to the operator")
    p.add_argument("--reply-to", type=int, default=None, help="Message id the first message replies to")
    p.add_argument("--data", type=str, default=str(settings.data_path), help="Path to the JSON state file")
    p.add_argument("--responses", type=str, default=str(settings.responses_path), help="Path to the autoresponder table")
    p.add_argument("--instant", action="store_true", help="Fire autoresponder effects on a virtual clock instead of waiting")
    p.add_argument("--no-save", action="store_true", help="Do not write state back to disk")
    p.add_argument("--log-level", type=str, default=settings.log_level)
    return p.parse_args()


def transcript(conv: Conversation) -> Dict[str, Any]:
    return {
        "conversation": conv.id,
        "name": conv.name,
        "kind": conv.kind.value,
        "messages": [
            {
                "id": m.id,
                "sender": m.sender_id,
                "text": m.text,
                "edited": m.edited,
                "reply_to": m.reply_to.to_dict() if m.reply_to else None,
                "reactions": ConversationStore.reaction_totals(m),
                "seen_by": ConversationStore.seen_by_others(m),
                "run_end": ConversationStore.is_run_end(conv, i),
            }
            for i, m in enumerate(conv.messages)
        ],
    }


async def main() -> int:
    args = parse_args()
    logger.remove()
    logger.add(sys.stderr, level=args.log_level.upper(), colorize=True, format="{time:HH:mm:ss} | {level} | {message}")

    scheduler = VirtualScheduler() if args.instant else LoopScheduler()
    messenger = Messenger(
        persistence=JsonPersistence(Path(args.data)),
        responses=ResponseCache(Path(args.responses)),
        scheduler=scheduler,
        autosave=not args.no_save,
    )
    messenger.load()

    conv = messenger.open_conversation(args.conversation)
    if conv is None:
        logger.error(f"Conversation not found: {args.conversation}")
        return 1

    reply_to = args.reply_to
    for text in args.messages:
        if not text.strip():
            continue
        message = await messenger.send_text(conv.id, args.sender, text, reply_to_id=reply_to)
        if message is None:
            logger.error(f"send_rejected | conv={conv.id} sender={args.sender}")
            return 1
        reply_to = None

    if scheduler.pending:
        logger.info(f"Waiting for {scheduler.pending} pending autoresponder task(s) ...")
    await scheduler.drain()

    print(json.dumps(transcript(conv), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
