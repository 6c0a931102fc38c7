from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Dict, List, Optional, Union

from loguru import logger

from .states import CacheState


ResponseTable = Dict[str, List[str]]


def parse_response_table(raw: object) -> ResponseTable:
    """Validate a decoded JSON document into a question -> answers table.

    Entries with a bad shape are skipped; a non-object document raises
    ValueError.
    """
    if not isinstance(raw, dict):
        raise ValueError(f"response table must be a JSON object, got {type(raw).__name__}")
    table: ResponseTable = {}
    for question, answers in raw.items():
        if not isinstance(question, str) or not isinstance(answers, list):
            logger.warning(f"responses_skip_entry | question={question!r}")
            continue
        table[question] = [a for a in answers if isinstance(a, str) and a.strip()]
    return table


def load_response_table(path: Union[str, Path]) -> ResponseTable:
    text = Path(path).read_text(encoding="utf-8")
    return parse_response_table(json.loads(text))


class ResponseCache:
    """Process-wide, load-once holder of the autoresponder table.

    The first ``get()`` starts the load; callers arriving while it runs
    await the same pending future. A failed load leaves an empty table.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self.state = CacheState.UNLOADED
        self._table: ResponseTable = {}
        self._pending: Optional[asyncio.Future] = None

    @property
    def table(self) -> ResponseTable:
        return self._table

    async def get(self) -> ResponseTable:
        if self.state in (CacheState.LOADED, CacheState.FAILED):
            return self._table
        if self._pending is None:
            self.state = CacheState.LOADING
            self._pending = asyncio.ensure_future(self._load())
        return await asyncio.shield(self._pending)

    async def _load(self) -> ResponseTable:
        try:
            table = await asyncio.to_thread(load_response_table, self.path)
        except Exception as e:
            logger.error(f"responses_load_failed | path={self.path} | {e}")
            self._table = {}
            self.state = CacheState.FAILED
        else:
            self._table = table
            self.state = CacheState.LOADED
            logger.info(f"responses_loaded | path={self.path} questions={len(table)}")
        finally:
            self._pending = None
        return self._table

    def reset(self) -> None:
        if self.state == CacheState.LOADING:
            return
        self._table = {}
        self.state = CacheState.UNLOADED
