from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from loguru import logger

from .matcher import Match, choose_reaction, choose_reply, find_response
from .models import Conversation, Message, OPERATOR_ID
from .responses import ResponseCache
from .scheduler import ScheduledTask, Scheduler
from .states import AttachmentKind, ConversationKind
from .store import ConversationStore


Range = Tuple[float, float]


@dataclass(frozen=True)
class ReplyTiming:
    """Delay ranges in seconds; each delay is drawn uniformly from [lo, hi)."""

    reaction: Range = (0.5, 1.5)
    direct_match: Range = (1.0, 3.0)
    direct_fallback: Range = (1.5, 3.0)
    group_match: Range = (1.0, 4.0)
    group_fallback: Range = (2.0, 4.0)

    def reply_range(self, kind: ConversationKind, matched: bool) -> Range:
        if kind == ConversationKind.GROUP:
            return self.group_match if matched else self.group_fallback
        return self.direct_match if matched else self.direct_fallback


class Autoresponder:
    def __init__(
        self,
        persona_id: str,
        store: ConversationStore,
        responses: ResponseCache,
        scheduler: Scheduler,
        is_live: Callable[[Conversation], bool],
        rng: Optional[random.Random] = None,
        timing: Optional[ReplyTiming] = None,
        delay_scale: float = 1.0,
    ) -> None:
        self.persona_id = persona_id
        self.store = store
        self.responses = responses
        self.scheduler = scheduler
        self.is_live = is_live
        self.rng = rng or random.Random()
        self.timing = timing or ReplyTiming()
        self.delay_scale = max(0.0, delay_scale)

    def is_bound(self, conversation: Conversation) -> bool:
        if conversation.is_group:
            return self.persona_id in conversation.members
        return conversation.counterpart_id == self.persona_id

    def should_respond(self, conversation: Conversation, message: Message) -> bool:
        # Photos count as utterances through their caption; files and voice notes do not.
        attachment = message.attachment
        return (
            message.sender_id == OPERATOR_ID
            and (attachment is None or attachment.kind == AttachmentKind.IMAGE)
            and bool(message.text.strip())
            and self.is_bound(conversation)
        )

    def _delay(self, bounds: Range) -> float:
        lo, hi = bounds
        return (lo + self.rng.random() * (hi - lo)) * self.delay_scale

    async def respond(self, conversation: Conversation, message: Message) -> Optional[Match]:
        """Schedule the persona's reaction and reply to ``message``.

        The reaction is queued before the table lookup, the reply after it.
        Returns the match used for the reply, if any.
        """
        if not self.should_respond(conversation, message):
            return None

        emoji = choose_reaction(self.rng)
        self.scheduler.call_later(
            self._delay(self.timing.reaction),
            ScheduledTask(
                label="persona_reaction",
                conversation_id=conversation.id,
                message_id=message.id,
                action=lambda: self._apply_reaction(conversation, message.id, emoji),
            ),
        )

        table = await self.responses.get()
        match = find_response(table, message.text)
        matched = match is not None and bool(match.answers)
        reply = choose_reply(match, conversation.kind, self.rng)
        if matched:
            logger.info(
                f"autoresponder_match | conv={conversation.id} score={match.score:.3f} "
                f"strength={match.strength.value} question={match.question!r}"
            )
        else:
            logger.info(f"autoresponder_fallback | conv={conversation.id} reply={reply!r}")

        self.scheduler.call_later(
            self._delay(self.timing.reply_range(conversation.kind, matched)),
            ScheduledTask(
                label="persona_reply",
                conversation_id=conversation.id,
                message_id=message.id,
                action=lambda: self._apply_reply(conversation, reply),
            ),
        )
        return match

    def _apply_reaction(self, conversation: Conversation, message_id: int, emoji: str) -> None:
        if not self.is_live(conversation):
            logger.debug(f"persona_reaction_dropped | conv={conversation.id} reason=conversation_gone")
            return
        if not self.store.set_reaction(conversation, message_id, self.persona_id, emoji):
            logger.debug(f"persona_reaction_dropped | conv={conversation.id} id={message_id} reason=message_gone")

    def _apply_reply(self, conversation: Conversation, text: str) -> None:
        if not self.is_live(conversation):
            logger.debug(f"persona_reply_dropped | conv={conversation.id} reason=conversation_gone")
            return
        self.store.append_message(conversation, self.persona_id, text)
