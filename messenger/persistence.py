from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Union

from loguru import logger

from .models import Contact, Conversation


def empty_snapshot() -> Dict[str, Any]:
    return {"contacts": [], "conversations": [], "counters": {}}


class JsonPersistence:
    """Whole-state JSON file store.

    Every save rewrites the file. Failures are logged and reported through
    the return value, never raised.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)

    def load_all(self) -> Dict[str, Any]:
        if not self.path.is_file():
            logger.info(f"store_empty | path={self.path}")
            return empty_snapshot()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"store_load_failed | path={self.path} | {e}")
            return empty_snapshot()
        if not isinstance(raw, dict):
            logger.error(f"store_load_failed | path={self.path} | top level is not an object")
            return empty_snapshot()

        snapshot = empty_snapshot()
        for item in raw.get("contacts") or []:
            try:
                snapshot["contacts"].append(Contact.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"store_skip_contact | {e}")
        for item in raw.get("conversations") or []:
            try:
                snapshot["conversations"].append(Conversation.from_dict(item))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"store_skip_conversation | {e}")
        counters = raw.get("counters") or {}
        if isinstance(counters, dict):
            snapshot["counters"] = {k: v for k, v in counters.items() if isinstance(v, int)}
        return snapshot

    def save_all(
        self,
        contacts: Iterable[Contact],
        conversations: Iterable[Conversation],
        counters: Mapping[str, int],
    ) -> bool:
        payload = {
            "contacts": [c.to_dict() for c in contacts],
            "conversations": [c.to_dict() for c in conversations],
            "counters": dict(counters),
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, ensure_ascii=False, indent=2)
                os.replace(tmp, self.path)
            except BaseException:
                if os.path.exists(tmp):
                    os.unlink(tmp)
                raise
        except OSError as e:
            logger.error(f"store_save_failed | path={self.path} | {e}")
            return False
        return True
