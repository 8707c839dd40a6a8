"""
Shared fixtures: a throwaway SQLite ledger per test, a scripted gateway and a
settable clock.
"""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, List, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from glimmer.errors import GenerationUnavailable
from glimmer.ledger import LedgerStore
from glimmer.lifecycle import LifecycleManager
from glimmer.schema import Ledger, Submission, Word
from glimmer.submissions import SubmissionIntake


class Clock:
    def __init__(self, day: str = "2024-01-01"):
        self.day = day

    def __call__(self) -> str:
        return self.day


class FakeGateway:
    """Stands in for GenerationGateway; records calls and fails on demand."""

    def __init__(self):
        self.words = ["Zentharo", "Quillomy", "Vespirant", "Mordallix"]
        self.image = b"\x89PNG fake"
        self.definitions = ["a gentle drifting", "the weight of fog"]
        self.meaning = "A soft word for the moment before waking."
        self.fail = set()
        self.delay = 0.0
        self.calls = {"word": 0, "image": 0, "summary": 0, "meaning": 0}
        self.summarized: List[List[Submission]] = []
        self.before_word: Optional[Callable[[], Awaitable[None]]] = None

    async def _step(self, capability: str):
        self.calls[capability] += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if capability in self.fail:
            raise GenerationUnavailable(capability, "scripted failure")

    async def generate_word(self) -> str:
        if self.before_word is not None:
            await self.before_word()
        await self._step("word")
        return self.words[(self.calls["word"] - 1) % len(self.words)]

    async def generate_image(self, word: str) -> bytes:
        await self._step("image")
        return self.image

    async def summarize(self, word: str, submissions) -> List[str]:
        self.summarized.append(list(submissions))
        await self._step("summary")
        return list(self.definitions)

    async def define(self, word: str) -> str:
        await self._step("meaning")
        return self.meaning


def make_store(db_path: Path) -> LedgerStore:
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return LedgerStore(async_sessionmaker(engine, expire_on_commit=False))


async def seed(store: LedgerStore, current: Optional[Word] = None, submissions=(), archive=()) -> Ledger:
    def replace(_: Ledger) -> Ledger:
        return Ledger(current=current, submissions=list(submissions), archive=list(archive))

    return await store.mutate(replace)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "ledger.db"


@pytest_asyncio.fixture
async def store(db_path: Path) -> LedgerStore:
    s = make_store(db_path)
    await s.init()
    return s


@pytest.fixture
def clock() -> Clock:
    return Clock()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def lifecycle(store: LedgerStore, gateway: FakeGateway, clock: Clock) -> LifecycleManager:
    return LifecycleManager(store, gateway, today=clock)


@pytest.fixture
def intake(store: LedgerStore) -> SubmissionIntake:
    return SubmissionIntake(store)
