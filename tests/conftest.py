"""Shared pytest fixtures.

Fixtures:
    - responses_file: small autoresponder table on disk
    - settings: Settings pointing at tmp paths
    - scheduler: VirtualScheduler (manual clock)
    - messenger: loaded Messenger wired to the above
    - store / direct_conv / group_conv: bare store and conversations
"""

import json
import random
from pathlib import Path

import pytest

from messenger.config import Settings
from messenger.manager import Messenger
from messenger.models import Conversation
from messenger.persistence import JsonPersistence
from messenger.responses import ResponseCache
from messenger.scheduler import VirtualScheduler
from messenger.states import ConversationKind
from messenger.store import ConversationStore


SAMPLE_TABLE = {
    "how are you": ["fine", "good"],
    "what is your name": ["Mimi"],
}


@pytest.fixture
def responses_file(tmp_path: Path) -> Path:
    path = tmp_path / "responses.json"
    path.write_text(json.dumps(SAMPLE_TABLE, ensure_ascii=False), encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path: Path, responses_file: Path) -> Settings:
    return Settings(
        data_path=tmp_path / "state.json",
        responses_path=responses_file,
        autoresponder_id="mimi",
        delay_scale=1.0,
    )


@pytest.fixture
def scheduler() -> VirtualScheduler:
    return VirtualScheduler()


@pytest.fixture
def messenger(settings: Settings, scheduler: VirtualScheduler) -> Messenger:
    m = Messenger(
        persistence=JsonPersistence(settings.data_path),
        responses=ResponseCache(settings.responses_path),
        scheduler=scheduler,
        settings=settings,
        rng=random.Random(7),
    )
    m.load()
    return m


@pytest.fixture
def store() -> ConversationStore:
    return ConversationStore()


@pytest.fixture
def direct_conv() -> Conversation:
    return Conversation(id="user_1", kind=ConversationKind.DIRECT, name="Alice")


@pytest.fixture
def group_conv() -> Conversation:
    return Conversation(
        id="group_1",
        kind=ConversationKind.GROUP,
        name="Friends",
        members=["user_1", "user_2", "mimi"],
    )
