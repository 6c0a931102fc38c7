"""Tests for the Messenger facade."""

import json
import random

import pytest

from messenger.manager import Messenger
from messenger.models import OPERATOR_ID
from messenger.persistence import JsonPersistence
from messenger.responses import ResponseCache
from messenger.scheduler import VirtualScheduler
from messenger.states import AttachmentKind, ContactRole


def _reload(settings):
    m = Messenger(
        persistence=JsonPersistence(settings.data_path),
        responses=ResponseCache(settings.responses_path),
        scheduler=VirtualScheduler(),
        settings=settings,
        rng=random.Random(3),
    )
    m.load()
    return m


class FailingPersistence(JsonPersistence):
    def save_all(self, contacts, conversations, counters):
        return False


class TestLoad:
    """First run and reload."""

    def test_first_run_seeds_pinned_contacts(self, messenger, settings):
        assert [c.role for c in messenger.contacts] == [
            ContactRole.DEVELOPER,
            ContactRole.FEATURED,
            ContactRole.AUTORESPONDER,
        ]
        assert settings.data_path.is_file()
        for contact in messenger.contacts:
            assert messenger.conversation(contact.id) is not None

    def test_persisted_order_is_reconciled(self, messenger, settings):
        messenger.add_contact("Alice")
        raw = json.loads(settings.data_path.read_text(encoding="utf-8"))
        raw["contacts"].reverse()
        settings.data_path.write_text(json.dumps(raw), encoding="utf-8")

        reloaded = _reload(settings)
        assert [c.id for c in reloaded.contacts] == ["developer", "featured", "mimi", "user_1"]

    @pytest.mark.asyncio
    async def test_round_trip(self, messenger, scheduler, settings):
        alice = messenger.add_contact("Alice")
        group = messenger.add_group("Friends", [alice.id, "mimi"])
        first = await messenger.send_text(alice.id, OPERATOR_ID, "hello")
        await messenger.send_text(alice.id, OPERATOR_ID, "again", reply_to_id=first.id)
        messenger.react(alice.id, first.id, "👍")
        shout = await messenger.send_text(group.id, OPERATOR_ID, "how are you")
        messenger.react(group.id, shout.id, "😂", count=2)
        scheduler.run_all()
        messenger.delete_message(alice.id, first.id)

        reloaded = _reload(settings)
        direct = reloaded.conversation(alice.id)
        assert [m.text for m in direct.messages] == ["again"]
        assert direct.messages[0].reply_to.text == "hello"
        assert direct.messages[0].reply_to.message_id == first.id

        loaded_group = reloaded.conversation(group.id)
        assert loaded_group.members == [alice.id, "mimi"]
        shout_copy = loaded_group.messages[0]
        assert shout_copy.reactions[OPERATOR_ID] == {"😂": 2}
        assert isinstance(shout_copy.reactions["mimi"], dict)
        assert reloaded.counters == messenger.counters

    def test_counter_never_reuses_ids(self, messenger, settings):
        alice = messenger.add_contact("Alice")
        raw = json.loads(settings.data_path.read_text(encoding="utf-8"))
        conv = next(c for c in raw["conversations"] if c["id"] == alice.id)
        conv["messages"].append({"id": 40, "sender_id": OPERATOR_ID, "text": "old"})
        raw["counters"]["message"] = 2
        settings.data_path.write_text(json.dumps(raw), encoding="utf-8")

        reloaded = _reload(settings)
        assert reloaded.store.next_message_id == 41

    def test_missing_counters_never_reuse_contact_or_group_ids(self, settings):
        settings.data_path.write_text(
            json.dumps(
                {
                    "contacts": [{"id": "user_4", "name": "Alice"}],
                    "conversations": [
                        {"id": "user_4", "kind": "user", "name": "Alice",
                         "messages": [{"id": 1, "sender_id": OPERATOR_ID, "text": "secret"}]},
                        {"id": "group_2", "kind": "group", "name": "Old", "members": ["user_4"]},
                    ],
                    "counters": {},
                }
            ),
            encoding="utf-8",
        )
        reloaded = _reload(settings)
        bob = reloaded.add_contact("Bob")
        group = reloaded.add_group("New", [bob.id])

        assert bob.id == "user_5"
        assert group.id == "group_3"
        assert reloaded.conversation(bob.id).messages == []
        assert [m.text for m in reloaded.conversation("user_4").messages] == ["secret"]


class TestContacts:
    """Contact and group management."""

    def test_add_contact_after_pinned(self, messenger):
        a = messenger.add_contact("Alice")
        b = messenger.add_contact("  Bob ")
        assert (a.id, b.id) == ("user_1", "user_2")
        assert b.name == "Bob"
        assert [c.id for c in messenger.contacts] == ["developer", "featured", "mimi", "user_2", "user_1"]

    def test_add_contact_requires_name(self, messenger):
        with pytest.raises(ValueError):
            messenger.add_contact("   ")

    def test_add_group_validation(self, messenger):
        with pytest.raises(ValueError):
            messenger.add_group("", ["mimi"])
        with pytest.raises(ValueError):
            messenger.add_group("Friends", ["nobody"])

    def test_add_group_ids(self, messenger):
        first = messenger.add_group("One", ["mimi"])
        second = messenger.add_group("Two", ["mimi", "mimi"])
        assert (first.id, second.id) == ("group_1", "group_2")
        assert second.members == ["mimi"]

    def test_delete_contact_leaves_groups(self, messenger):
        alice = messenger.add_contact("Alice")
        group = messenger.add_group("Friends", [alice.id, "mimi"])
        assert messenger.delete_contact(alice.id) is True
        assert messenger.conversation(alice.id) is None
        assert group.members == ["mimi"]
        assert messenger.delete_contact(alice.id) is False

    def test_pinned_contacts_cannot_be_deleted(self, messenger, settings):
        for contact_id in ("developer", "featured", "mimi"):
            assert messenger.delete_contact(contact_id) is False
        assert [c.id for c in messenger.contacts] == ["developer", "featured", "mimi"]

        reloaded = _reload(settings)
        assert reloaded.find_contact("mimi") is not None

    def test_rename_and_cycle_status(self, messenger):
        alice = messenger.add_contact("Alice")
        assert messenger.rename_contact(alice.id, "Alicia").name == "Alicia"
        assert messenger.conversation(alice.id).name == "Alicia"
        assert messenger.rename_contact(alice.id, " ") is None
        assert messenger.cycle_status(alice.id) == "5 minutes ago"
        assert messenger.cycle_status(alice.id) == "10 minutes ago"
        assert messenger.cycle_status("ghost") is None


class TestMessages:
    """Sending and message edits through the facade."""

    @pytest.mark.asyncio
    async def test_blank_text_rejected(self, messenger):
        with pytest.raises(ValueError):
            await messenger.send_text("mimi", OPERATOR_ID, "   ")

    @pytest.mark.asyncio
    async def test_info_only_profiles_reject_sends(self, messenger):
        assert await messenger.send_text("developer", OPERATOR_ID, "hi") is None
        assert await messenger.send_text("featured", OPERATOR_ID, "hi") is None
        assert messenger.conversation("developer").messages == []

    @pytest.mark.asyncio
    async def test_unknown_conversation(self, messenger):
        assert await messenger.send_text("nowhere", OPERATOR_ID, "hi") is None
        assert messenger.react("nowhere", 1, "👍") is False
        assert messenger.edit_message("nowhere", 1, "x") is None

    @pytest.mark.asyncio
    async def test_open_marks_seen(self, messenger, scheduler):
        await messenger.send_text("mimi", OPERATOR_ID, "how are you")
        scheduler.run_all()
        conv = messenger.open_conversation("mimi")
        reply = conv.messages[-1]
        assert reply.sender_id == "mimi"
        assert OPERATOR_ID in reply.seen_by

    def test_voice_duration(self, messenger):
        message = messenger.send_voice("mimi", OPERATOR_ID)
        assert message.attachment.kind == AttachmentKind.VOICE
        assert 5 <= message.attachment.duration < 30
        assert messenger.send_voice("mimi", OPERATOR_ID, duration=0).attachment.duration == 1

    @pytest.mark.asyncio
    async def test_attachment_kinds(self, messenger):
        image = await messenger.send_attachment("mimi", OPERATOR_ID, "cat.png", size=10, image=True)
        doc = await messenger.send_attachment("mimi", OPERATOR_ID, "notes.pdf")
        assert image.attachment.kind == AttachmentKind.IMAGE
        assert doc.attachment.kind == AttachmentKind.FILE
        assert doc.text == "notes.pdf"

    def test_quick_reaction(self, messenger):
        message = messenger.send_quick_reaction("mimi")
        assert message.text == "👍"
        assert message.sender_id == OPERATOR_ID

    def test_quick_reaction_respects_info_only(self, messenger):
        assert messenger.send_quick_reaction("developer") is None
        assert messenger.send_quick_reaction("featured") is None
        assert messenger.conversation("featured").messages == []

    @pytest.mark.asyncio
    async def test_attachments_respect_info_only(self, messenger):
        assert await messenger.send_attachment("developer", OPERATOR_ID, "x.png", image=True) is None
        assert messenger.send_voice("featured", OPERATOR_ID) is None

    @pytest.mark.asyncio
    async def test_save_failure_keeps_state(self, settings, scheduler):
        m = Messenger(
            persistence=FailingPersistence(settings.data_path),
            responses=ResponseCache(settings.responses_path),
            scheduler=scheduler,
            settings=settings,
        )
        m.load()
        contact = m.add_contact("Alice")
        message = await m.send_text(contact.id, OPERATOR_ID, "still here")
        assert m.conversation(contact.id).messages == [message]
        assert m.save() is False
