from __future__ import annotations

from typing import Callable, Dict, List, Optional

from loguru import logger

from .models import (
    Attachment,
    Conversation,
    CountedReaction,
    Message,
    ReplySnapshot,
    SingleReaction,
    read_reaction,
    utcnow,
)


class ConversationStore:
    """Message log operations shared by every conversation.

    Owns the message id counter. ``on_change`` is called after each
    successful mutation so the caller can persist.
    """

    def __init__(self, next_message_id: int = 1, on_change: Optional[Callable[[], None]] = None) -> None:
        self.next_message_id = max(1, int(next_message_id))
        self.on_change = on_change

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _allocate_id(self) -> int:
        mid = self.next_message_id
        self.next_message_id += 1
        return mid

    def find_message(self, conversation: Conversation, message_id: int) -> Optional[Message]:
        for message in conversation.messages:
            if message.id == message_id:
                return message
        return None

    def append_message(
        self,
        conversation: Conversation,
        sender_id: str,
        text: str = "",
        *,
        attachment: Optional[Attachment] = None,
        reply_to: Optional[Message] = None,
    ) -> Message:
        snapshot = None
        if reply_to is not None:
            snapshot = ReplySnapshot(message_id=reply_to.id, sender_id=reply_to.sender_id, text=reply_to.text)
        message = Message(
            id=self._allocate_id(),
            sender_id=sender_id,
            text=text,
            timestamp=utcnow(),
            reply_to=snapshot,
            attachment=attachment,
        )
        conversation.messages.append(message)
        message.seen_by.append(sender_id)
        logger.debug(f"message_append | conv={conversation.id} id={message.id} sender={sender_id}")
        self._changed()
        return message

    def toggle_reaction(
        self,
        conversation: Conversation,
        message_id: int,
        reactor_id: str,
        emoji: str,
        count: int = 1,
    ) -> bool:
        """Apply an operator-style reaction.

        Direct chats hold one emoji per reactor: the same emoji again removes
        it, another emoji replaces it. Group chats keep a count per emoji and
        repeated reactions add to it.
        """
        message = self.find_message(conversation, message_id)
        if message is None:
            logger.debug(f"reaction_miss | conv={conversation.id} id={message_id}")
            return False
        if conversation.is_group:
            self._add_counted(message, reactor_id, emoji, count)
        elif message.reactions.get(reactor_id) == emoji:
            del message.reactions[reactor_id]
        else:
            message.reactions[reactor_id] = emoji
        self._changed()
        return True

    def set_reaction(self, conversation: Conversation, message_id: int, reactor_id: str, emoji: str) -> bool:
        """Record a reaction without toggling (used by the autoresponder)."""
        message = self.find_message(conversation, message_id)
        if message is None:
            return False
        if conversation.is_group:
            self._add_counted(message, reactor_id, emoji, 1)
        else:
            message.reactions[reactor_id] = emoji
        self._changed()
        return True

    @staticmethod
    def _add_counted(message: Message, reactor_id: str, emoji: str, count: int) -> None:
        current = read_reaction(message.reactions.get(reactor_id))
        if isinstance(current, SingleReaction):
            counts = {current.emoji: 1}
        elif isinstance(current, CountedReaction):
            counts = dict(current.counts)
        else:
            counts = {}
        counts[emoji] = counts.get(emoji, 0) + max(1, int(count))
        message.reactions[reactor_id] = counts

    def edit_message(self, conversation: Conversation, message_id: int, new_text: str) -> Optional[Message]:
        message = self.find_message(conversation, message_id)
        text = (new_text or "").strip()
        if message is None or not text:
            return None
        message.text = text
        message.edited = True
        self._changed()
        return message

    def delete_message(self, conversation: Conversation, message_id: int) -> bool:
        # Replies pointing at this message keep their own snapshot.
        for index, message in enumerate(conversation.messages):
            if message.id == message_id:
                del conversation.messages[index]
                logger.debug(f"message_delete | conv={conversation.id} id={message_id}")
                self._changed()
                return True
        return False

    def mark_seen(self, conversation: Conversation, message_id: int, viewer_id: str) -> bool:
        message = self.find_message(conversation, message_id)
        if message is None:
            return False
        if viewer_id not in message.seen_by:
            message.seen_by.append(viewer_id)
            self._changed()
        return True

    def mark_all_seen_on_open(self, conversation: Conversation, viewer_id: str) -> int:
        marked = 0
        for message in conversation.messages:
            if message.sender_id != viewer_id and viewer_id not in message.seen_by:
                message.seen_by.append(viewer_id)
                marked += 1
        if marked:
            self._changed()
        return marked

    # Read model

    @staticmethod
    def reaction_totals(message: Message) -> Dict[str, int]:
        totals: Dict[str, int] = {}
        for raw in message.reactions.values():
            reaction = read_reaction(raw)
            if isinstance(reaction, SingleReaction):
                totals[reaction.emoji] = totals.get(reaction.emoji, 0) + 1
            elif isinstance(reaction, CountedReaction):
                for emoji, n in reaction.counts.items():
                    totals[emoji] = totals.get(emoji, 0) + n
        return totals

    @staticmethod
    def has_reacted(message: Message, reactor_id: str) -> bool:
        reaction = read_reaction(message.reactions.get(reactor_id))
        if isinstance(reaction, CountedReaction):
            return bool(reaction.counts)
        return reaction is not None

    @staticmethod
    def seen_by_others(message: Message) -> List[str]:
        return [viewer for viewer in message.seen_by if viewer != message.sender_id]

    @staticmethod
    def sender_runs(conversation: Conversation) -> List[List[Message]]:
        """Split the log into runs of consecutive messages from one sender."""
        runs: List[List[Message]] = []
        for message in conversation.messages:
            if runs and runs[-1][-1].sender_id == message.sender_id:
                runs[-1].append(message)
            else:
                runs.append([message])
        return runs

    @staticmethod
    def is_run_end(conversation: Conversation, index: int) -> bool:
        messages = conversation.messages
        if not 0 <= index < len(messages):
            return False
        if index == len(messages) - 1:
            return True
        return messages[index + 1].sender_id != messages[index].sender_id
