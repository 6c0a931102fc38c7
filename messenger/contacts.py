from __future__ import annotations

from typing import List, Optional

from .models import Contact
from .states import PINNED_ROLE_ORDER, ContactRole


STATUS_CYCLE = (
    "Active",
    "5 minutes ago",
    "10 minutes ago",
    "15 minutes ago",
    "30 minutes ago",
    "1 hour ago",
)


def insert_non_pinned(contacts: List[Contact], contact: Contact) -> int:
    """Insert a regular contact right after the leading pinned block.

    Returns the index the contact landed at.
    """
    index = 0
    for i, existing in enumerate(contacts):
        if not existing.is_pinned:
            break
        index = i + 1
    contacts.insert(index, contact)
    return index


def reconcile_order(contacts: List[Contact]) -> List[Contact]:
    """Rebuild the list as pinned roles in fixed order, then everyone else.

    Stored order is never trusted, so this runs after every bulk load.
    Regular contacts keep their relative order.
    """
    pinned: List[Contact] = []
    for role in PINNED_ROLE_ORDER:
        holder = next((c for c in contacts if c.role == role), None)
        if holder is not None:
            pinned.append(holder)
    # A second holder of an already placed role falls back among the rest.
    rest = [c for c in contacts if not any(c is p for p in pinned)]
    return pinned + rest


def next_status(current: Optional[str]) -> str:
    try:
        index = STATUS_CYCLE.index(current or "")
    except ValueError:
        index = -1
    return STATUS_CYCLE[(index + 1) % len(STATUS_CYCLE)]


def default_contacts(autoresponder_id: str = "mimi") -> List[Contact]:
    """Pinned profiles seeded on first run."""
    return [
        Contact(
            id="developer",
            name="Developer",
            status_text="Developer",
            role=ContactRole.DEVELOPER,
            description="Maintainer of this app. Get in touch if something breaks or you want a feature.",
        ),
        Contact(
            id="featured",
            name="Featured Profile",
            status_text="Featured",
            role=ContactRole.FEATURED,
            description="Info-only profile. Head to Mimi for a chat, or start a group.",
        ),
        Contact(
            id=autoresponder_id,
            name="Mimi",
            status_text="Online chatting",
            role=ContactRole.AUTORESPONDER,
        ),
    ]
