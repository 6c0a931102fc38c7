from __future__ import annotations

from enum import Enum


class ConversationKind(Enum):
    DIRECT = "user"
    GROUP = "group"


class ContactRole(Enum):
    DEVELOPER = "developer"
    FEATURED = "featured"
    AUTORESPONDER = "autoresponder"


# Pinned contacts always lead the contact list in exactly this order.
PINNED_ROLE_ORDER: tuple[ContactRole, ...] = (
    ContactRole.DEVELOPER,
    ContactRole.FEATURED,
    ContactRole.AUTORESPONDER,
)


class AttachmentKind(Enum):
    IMAGE = "image"
    FILE = "file"
    VOICE = "voice"


class MatchStrength(Enum):
    PRIMARY = "primary"
    SECONDARY = "secondary"


class CacheState(Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"
