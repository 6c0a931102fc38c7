from __future__ import annotations

import random
import re
from typing import Any, Dict, Iterable, List, Optional

from loguru import logger

from .autoresponder import Autoresponder
from .config import Settings, get_settings
from .contacts import default_contacts, insert_non_pinned, next_status, reconcile_order
from .models import OPERATOR_ID, Attachment, Contact, Conversation, Message
from .persistence import JsonPersistence
from .responses import ResponseCache
from .scheduler import Scheduler
from .states import AttachmentKind, ContactRole, ConversationKind
from .store import ConversationStore


INFO_ONLY_ROLES = (ContactRole.DEVELOPER, ContactRole.FEATURED)

_SEQUENCE_ID = re.compile(r"^(user|group)_(\d+)$")


class Messenger:
    """Operator-facing facade over contacts, conversations and the persona.

    Every mutation is saved through the persistence collaborator; a failed
    save is logged and the in-memory change stays.
    """

    def __init__(
        self,
        persistence: JsonPersistence,
        responses: ResponseCache,
        scheduler: Scheduler,
        settings: Optional[Settings] = None,
        rng: Optional[random.Random] = None,
        autosave: bool = True,
    ) -> None:
        self.settings = settings or get_settings()
        self.persistence = persistence
        self.rng = rng or random.Random()
        self.autosave = autosave
        self.contacts: List[Contact] = []
        self.groups: List[Conversation] = []
        self._direct: Dict[str, Conversation] = {}
        self.next_contact_id = 1
        self.next_group_id = 1
        self.store = ConversationStore(on_change=self.save)
        self.autoresponder = Autoresponder(
            persona_id=self.settings.autoresponder_id,
            store=self.store,
            responses=responses,
            scheduler=scheduler,
            is_live=self.is_live,
            rng=self.rng,
            delay_scale=self.settings.delay_scale,
        )

    # Persistence

    @property
    def counters(self) -> Dict[str, int]:
        return {
            "message": self.store.next_message_id,
            "contact": self.next_contact_id,
            "group": self.next_group_id,
        }

    def conversations(self) -> List[Conversation]:
        direct = [self._direct[c.id] for c in self.contacts if c.id in self._direct]
        return direct + list(self.groups)

    def save(self) -> bool:
        if not self.autosave:
            return True
        ok = self.persistence.save_all(self.contacts, self.conversations(), self.counters)
        if not ok:
            logger.warning("messenger_save_failed | keeping in-memory state")
        return ok

    def load(self) -> None:
        snapshot = self.persistence.load_all()
        contacts = snapshot["contacts"]
        first_run = not contacts
        if first_run:
            contacts = default_contacts(self.settings.autoresponder_id)
        self.contacts = reconcile_order(contacts)

        known = {c.id for c in self.contacts}
        self._direct = {}
        self.groups = []
        for conv in snapshot["conversations"]:
            if conv.is_group:
                self.groups.append(conv)
            elif conv.id in known:
                self._direct[conv.id] = conv
        for contact in self.contacts:
            self._ensure_direct(contact)

        counters = snapshot["counters"]
        self.store.next_message_id = max(counters.get("message", 1), self._max_message_id() + 1)
        self.next_contact_id = max(1, counters.get("contact", 1), self._max_sequence("user", self.contacts) + 1)
        self.next_group_id = max(1, counters.get("group", 1), self._max_sequence("group", self.groups) + 1)
        logger.info(
            f"messenger_loaded | contacts={len(self.contacts)} groups={len(self.groups)} first_run={first_run}"
        )
        if first_run:
            self.save()

    def _max_message_id(self) -> int:
        return max((m.id for conv in self.conversations() for m in conv.messages), default=0)

    @staticmethod
    def _max_sequence(prefix: str, items: Iterable[Any]) -> int:
        """Largest n among ids shaped like ``<prefix>_<n>``, or 0."""
        highest = 0
        for item in items:
            m = _SEQUENCE_ID.match(item.id)
            if m and m.group(1) == prefix:
                highest = max(highest, int(m.group(2)))
        return highest

    def _ensure_direct(self, contact: Contact) -> Conversation:
        conv = self._direct.get(contact.id)
        if conv is None:
            conv = Conversation(
                id=contact.id,
                kind=ConversationKind.DIRECT,
                name=contact.name,
                avatar=contact.avatar,
                is_online=contact.is_online,
            )
            self._direct[contact.id] = conv
        return conv

    # Contacts and groups

    def find_contact(self, contact_id: str) -> Optional[Contact]:
        return next((c for c in self.contacts if c.id == contact_id), None)

    def conversation(self, conversation_id: str) -> Optional[Conversation]:
        conv = self._direct.get(conversation_id)
        if conv is not None:
            return conv
        return next((g for g in self.groups if g.id == conversation_id), None)

    def is_live(self, conversation: Conversation) -> bool:
        return self.conversation(conversation.id) is conversation

    def add_contact(self, name: str, status_text: str = "Active", avatar: Optional[str] = None) -> Contact:
        name = (name or "").strip()
        if not name:
            raise ValueError("contact name is required")
        contact = Contact(
            id=f"user_{self.next_contact_id}",
            name=name,
            status_text=(status_text or "").strip() or "Active",
            avatar=avatar,
        )
        self.next_contact_id += 1
        index = insert_non_pinned(self.contacts, contact)
        self._ensure_direct(contact)
        logger.info(f"contact_added | id={contact.id} index={index}")
        self.save()
        return contact

    def add_group(self, name: str, member_ids: Iterable[str], avatar: Optional[str] = None) -> Conversation:
        name = (name or "").strip()
        if not name:
            raise ValueError("group name is required")
        members: List[str] = []
        for member_id in member_ids:
            if self.find_contact(member_id) is not None and member_id not in members:
                members.append(member_id)
        if not members:
            raise ValueError("a group needs at least one known member")
        group = Conversation(
            id=f"group_{self.next_group_id}",
            kind=ConversationKind.GROUP,
            name=name,
            members=members,
            avatar=avatar,
        )
        self.next_group_id += 1
        self.groups.append(group)
        logger.info(f"group_added | id={group.id} members={len(members)}")
        self.save()
        return group

    def rename_contact(self, contact_id: str, name: str) -> Optional[Contact]:
        contact = self.find_contact(contact_id)
        name = (name or "").strip()
        if contact is None or not name:
            return None
        contact.name = name
        self._direct[contact.id].name = name
        self.save()
        return contact

    def cycle_status(self, contact_id: str) -> Optional[str]:
        contact = self.find_contact(contact_id)
        if contact is None:
            return None
        contact.custom_status = next_status(contact.custom_status or "Active")
        self.save()
        return contact.custom_status

    def delete_contact(self, contact_id: str) -> bool:
        contact = self.find_contact(contact_id)
        if contact is None:
            return False
        if contact.is_pinned:
            logger.debug(f"contact_delete_refused | id={contact_id} role={contact.role.value}")
            return False
        self.contacts.remove(contact)
        self._direct.pop(contact_id, None)
        for group in self.groups:
            if contact_id in group.members:
                group.members = [m for m in group.members if m != contact_id]
        logger.info(f"contact_deleted | id={contact_id}")
        self.save()
        return True

    def delete_group(self, group_id: str) -> bool:
        for index, group in enumerate(self.groups):
            if group.id == group_id:
                del self.groups[index]
                logger.info(f"group_deleted | id={group_id}")
                self.save()
                return True
        return False

    # Messages

    def open_conversation(self, conversation_id: str) -> Optional[Conversation]:
        conv = self.conversation(conversation_id)
        if conv is not None:
            self.store.mark_all_seen_on_open(conv, OPERATOR_ID)
        return conv

    def _can_send(self, conv: Conversation, sender_id: str) -> bool:
        if not conv.is_group:
            contact = self.find_contact(conv.id)
            # Developer and featured profiles are info-only pages.
            if contact is not None and contact.role in INFO_ONLY_ROLES:
                return False
        return sender_id == OPERATOR_ID or conv.involves(sender_id)

    async def send_text(
        self,
        conversation_id: str,
        sender_id: str,
        text: str,
        reply_to_id: Optional[int] = None,
    ) -> Optional[Message]:
        """Append a text message and let the persona react if it is bound."""
        text = (text or "").strip()
        if not text:
            raise ValueError("message text is required")
        conv = self.conversation(conversation_id)
        if conv is None or not self._can_send(conv, sender_id):
            logger.debug(f"send_rejected | conv={conversation_id} sender={sender_id}")
            return None
        target = self.store.find_message(conv, reply_to_id) if reply_to_id is not None else None
        message = self.store.append_message(conv, sender_id, text, reply_to=target)
        await self.autoresponder.respond(conv, message)
        return message

    async def send_attachment(
        self,
        conversation_id: str,
        sender_id: str,
        name: str,
        size: int = 0,
        data_ref: Optional[str] = None,
        image: bool = False,
        reply_to_id: Optional[int] = None,
    ) -> Optional[Message]:
        """Append an image or file. A photo is captioned with its name (or
        "Photo") and the persona answers that caption like text."""
        conv = self.conversation(conversation_id)
        if conv is None or not self._can_send(conv, sender_id):
            return None
        attachment = Attachment(
            kind=AttachmentKind.IMAGE if image else AttachmentKind.FILE,
            name=name or ("photo" if image else "file"),
            size=size,
            data_ref=data_ref,
        )
        caption = name or ("Photo" if image else "Attachment")
        target = self.store.find_message(conv, reply_to_id) if reply_to_id is not None else None
        message = self.store.append_message(conv, sender_id, caption, attachment=attachment, reply_to=target)
        if image:
            await self.autoresponder.respond(conv, message)
        return message

    def send_voice(
        self,
        conversation_id: str,
        sender_id: str,
        duration: Optional[int] = None,
        reply_to_id: Optional[int] = None,
    ) -> Optional[Message]:
        conv = self.conversation(conversation_id)
        if conv is None or not self._can_send(conv, sender_id):
            return None
        if duration is None:
            duration = self.rng.randrange(5, 30)
        attachment = Attachment(kind=AttachmentKind.VOICE, duration=max(1, int(duration)))
        target = self.store.find_message(conv, reply_to_id) if reply_to_id is not None else None
        return self.store.append_message(conv, sender_id, "", attachment=attachment, reply_to=target)

    def send_quick_reaction(self, conversation_id: str, emoji: str = "👍") -> Optional[Message]:
        conv = self.conversation(conversation_id)
        if conv is None or not self._can_send(conv, OPERATOR_ID):
            return None
        return self.store.append_message(conv, OPERATOR_ID, emoji)

    def react(
        self,
        conversation_id: str,
        message_id: int,
        emoji: str,
        reactor_id: str = OPERATOR_ID,
        count: int = 1,
    ) -> bool:
        conv = self.conversation(conversation_id)
        if conv is None:
            return False
        return self.store.toggle_reaction(conv, message_id, reactor_id, emoji, count)

    def edit_message(self, conversation_id: str, message_id: int, new_text: str) -> Optional[Message]:
        conv = self.conversation(conversation_id)
        if conv is None:
            return None
        return self.store.edit_message(conv, message_id, new_text)

    def delete_message(self, conversation_id: str, message_id: int) -> bool:
        conv = self.conversation(conversation_id)
        if conv is None:
            return False
        return self.store.delete_message(conv, message_id)

    def mark_seen(self, conversation_id: str, message_id: int, viewer_id: str) -> bool:
        conv = self.conversation(conversation_id)
        if conv is None:
            return False
        return self.store.mark_seen(conv, message_id, viewer_id)
