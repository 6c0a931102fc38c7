from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from loguru import logger

from .states import AttachmentKind, ContactRole, ConversationKind


OPERATOR_ID = "me"
OPERATOR_NAME = "You"

# Raw reaction value as stored on a message: a single emoji (direct chats and
# older data) or a per-emoji count mapping (group chats).
RawReaction = Union[str, Dict[str, int]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_ts(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return utcnow()


@dataclass
class Contact:
    id: str
    name: str
    status_text: str = "Active"
    avatar: Optional[str] = None
    is_online: bool = True
    last_active: datetime = field(default_factory=utcnow)
    role: Optional[ContactRole] = None
    custom_status: Optional[str] = None
    description: Optional[str] = None

    @property
    def is_pinned(self) -> bool:
        return self.role is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status_text": self.status_text,
            "avatar": self.avatar,
            "is_online": self.is_online,
            "last_active": self.last_active.isoformat(),
            "role": self.role.value if self.role else None,
            "custom_status": self.custom_status,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Contact":
        role = data.get("role")
        try:
            role = ContactRole(role) if role else None
        except ValueError:
            role = None
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            status_text=data.get("status_text") or "Active",
            avatar=data.get("avatar"),
            is_online=bool(data.get("is_online", True)),
            last_active=_parse_ts(data.get("last_active")),
            role=role,
            custom_status=data.get("custom_status"),
            description=data.get("description"),
        )


@dataclass(frozen=True)
class Attachment:
    kind: AttachmentKind
    name: str = ""
    size: int = 0
    data_ref: Optional[str] = None
    duration: Optional[int] = None  # seconds, voice notes only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "name": self.name,
            "size": self.size,
            "data_ref": self.data_ref,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Attachment":
        return cls(
            kind=AttachmentKind(data.get("kind", AttachmentKind.FILE.value)),
            name=data.get("name") or "",
            size=int(data.get("size") or 0),
            data_ref=data.get("data_ref"),
            duration=data.get("duration"),
        )


@dataclass(frozen=True)
class ReplySnapshot:
    """Copy of the replied-to message taken when the reply is written.

    Later edits or deletion of the target never touch it.
    """

    message_id: int
    sender_id: str
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"message_id": self.message_id, "sender_id": self.sender_id, "text": self.text}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ReplySnapshot":
        return cls(
            message_id=int(data["message_id"]),
            sender_id=str(data.get("sender_id", "")),
            text=data.get("text") or "",
        )


@dataclass(frozen=True)
class SingleReaction:
    emoji: str


@dataclass(frozen=True)
class CountedReaction:
    counts: Mapping[str, int]


def read_reaction(value: Any) -> Optional[Union[SingleReaction, CountedReaction]]:
    """Resolve a raw reaction value by its shape."""
    if isinstance(value, str):
        return SingleReaction(value) if value else None
    if isinstance(value, Mapping):
        counts = {}
        for emoji, count in value.items():
            try:
                n = int(count)
            except (TypeError, ValueError):
                continue
            if n > 0:
                counts[str(emoji)] = n
        return CountedReaction(counts)
    return None


@dataclass
class Message:
    id: int
    sender_id: str
    text: str = ""
    timestamp: datetime = field(default_factory=utcnow)
    edited: bool = False
    reactions: Dict[str, RawReaction] = field(default_factory=dict)
    reply_to: Optional[ReplySnapshot] = None
    seen_by: List[str] = field(default_factory=list)
    attachment: Optional[Attachment] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "id": self.id,
            "sender_id": self.sender_id,
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "edited": self.edited,
            "reactions": {k: (dict(v) if isinstance(v, dict) else v) for k, v in self.reactions.items()},
            "seen_by": list(self.seen_by),
        }
        if self.reply_to:
            result["reply_to"] = self.reply_to.to_dict()
        if self.attachment:
            result["attachment"] = self.attachment.to_dict()
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Message":
        reactions = data.get("reactions") or {}
        if not isinstance(reactions, Mapping):
            raise TypeError(f"reactions must be an object, got {type(reactions).__name__}")
        seen: List[str] = []
        for viewer in data.get("seen_by") or []:
            if viewer not in seen:
                seen.append(viewer)
        reply = data.get("reply_to")
        attachment = data.get("attachment")
        return cls(
            id=int(data["id"]),
            sender_id=str(data["sender_id"]),
            text=data.get("text") or "",
            timestamp=_parse_ts(data.get("timestamp")),
            edited=bool(data.get("edited", False)),
            reactions=dict(reactions),
            reply_to=ReplySnapshot.from_dict(reply) if reply else None,
            seen_by=seen,
            attachment=Attachment.from_dict(attachment) if attachment else None,
        )


@dataclass
class Conversation:
    id: str
    kind: ConversationKind
    name: str
    messages: List[Message] = field(default_factory=list)
    members: List[str] = field(default_factory=list)
    avatar: Optional[str] = None
    is_online: bool = True

    @property
    def is_group(self) -> bool:
        return self.kind == ConversationKind.GROUP

    @property
    def counterpart_id(self) -> Optional[str]:
        # Direct conversations share their counterpart contact's id.
        return None if self.is_group else self.id

    def involves(self, identity: str) -> bool:
        if self.is_group:
            return identity in self.members
        return self.id == identity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "members": list(self.members),
            "avatar": self.avatar,
            "is_online": self.is_online,
            "messages": [m.to_dict() for m in self.messages],
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Conversation":
        messages: List[Message] = []
        for item in data.get("messages") or []:
            try:
                messages.append(Message.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"store_skip_message | conv={data.get('id')} | {e}")
        return cls(
            id=str(data["id"]),
            kind=ConversationKind(data.get("kind", ConversationKind.DIRECT.value)),
            name=data.get("name") or "",
            messages=messages,
            members=list(data.get("members") or []),
            avatar=data.get("avatar"),
            is_online=bool(data.get("is_online", True)),
        )
