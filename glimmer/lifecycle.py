# glimmer/lifecycle.py
from __future__ import annotations

import asyncio
import logging
import re
from datetime import datetime
from typing import Callable, FrozenSet, Optional, Tuple

from .config import TZ
from .errors import GenerationUnavailable, NoCurrentWordError, RolloverConflict, ValidationError
from .generation import MAX_WORD_LEN, GenerationGateway
from .ledger import LedgerStore
from .schema import NO_DEFINITIONS, ArchivedWord, Ledger, Word

logger = logging.getLogger(__name__)

_LETTERS_ONLY = re.compile(r"^[A-Za-z]+$")
MIN_WORD_LEN = 6
MAX_SUMMARY_ATTEMPTS = 3             # re-summaries when submissions land mid-rollover


def today_key() -> str:
    return datetime.now(TZ).strftime("%Y-%m-%d")


def _same_word(a: Optional[Word], b: Optional[Word]) -> bool:
    if a is None or b is None:
        return a is b
    return (a.word, a.date) == (b.word, b.date)


def _pool_ids(ledger: Ledger) -> FrozenSet[str]:
    if ledger.current is None:
        return frozenset()
    return frozenset(s.id for s in ledger.submissions if s.word in (None, ledger.current.word))


class _PoolChanged(Exception):
    pass


class LifecycleManager:
    """
    Day-rollover state machine.

    A rollover archives the outgoing word, generates the next one and commits
    both with the cleared submission pool in a single ledger mutation. External
    calls happen before that mutation, under ``_lock``, so a failed mandatory
    step (summary, word) leaves the ledger exactly as it was. Submissions that
    land while those calls run make the commit re-summarize instead of
    clearing them unseen.
    """

    def __init__(self, store: LedgerStore, gateway: GenerationGateway,
                 today: Callable[[], str] = today_key):
        self.store = store
        self.gateway = gateway
        self.today = today
        self._lock = asyncio.Lock()

    # ───────── Transitions ─────────
    async def ensure_current_day(self) -> Word:
        today = self.today()
        ledger = await self.store.read()
        if ledger.current is not None and ledger.current.date == today:
            return ledger.current

        async with self._lock:
            # whoever held the lock before us may already have rolled over
            ledger = await self.store.read()
            if ledger.current is not None and ledger.current.date == today:
                return ledger.current
            try:
                word, _ = await self._roll_over(ledger)
            except RolloverConflict:
                logger.info("rollover lost to another worker, using its word")
                current = (await self.store.read()).current
                if current is None or current.date != today:
                    raise
                return current
            return word

    async def force_set_word(self, literal: str) -> Word:
        text = (literal or "").strip()
        if not _LETTERS_ONLY.match(text) or not MIN_WORD_LEN <= len(text) <= MAX_WORD_LEN:
            raise ValidationError(f"word must be {MIN_WORD_LEN}-{MAX_WORD_LEN} letters A-Z")
        async with self._lock:
            ledger = await self.store.read()
            word, _ = await self._roll_over(ledger, literal=text)
            return word

    async def trigger_summarization_now(self) -> ArchivedWord:
        async with self._lock:
            ledger = await self.store.read()
            if ledger.current is None:
                raise NoCurrentWordError("there is no word to summarize")
            _, archived = await self._roll_over(ledger)
            return archived

    async def regenerate_image(self) -> Word:
        async with self._lock:
            current = (await self.store.read()).current
            if current is None:
                raise NoCurrentWordError("there is no word to illustrate")
            image = await self.gateway.generate_image(current.word)
            updated = current.model_copy(update={"image": image})

            def replace_image(ledger: Ledger) -> Ledger:
                if not _same_word(ledger.current, current):
                    raise RolloverConflict("word changed while the image was generated")
                ledger.current = updated
                return ledger

            await self.store.mutate(replace_image)
            logger.info("regenerated image for %s", current.word)
            return updated

    # ───────── Rollover ─────────
    async def _roll_over(self, ledger: Ledger, literal: Optional[str] = None) -> Tuple[Word, Optional[ArchivedWord]]:
        outgoing = ledger.current
        archived, pool_ids = await self._archive(ledger)

        if literal is not None:
            text, meaning = literal, None
        else:
            text = await self.gateway.generate_word()
            meaning = await self._optional(self.gateway.define(text), "meaning", text)
        image = await self._optional(self.gateway.generate_image(text), "image", text)
        new_word = Word(word=text, image=image, date=self.today(), ai_meaning=meaning)

        for attempt in range(1, MAX_SUMMARY_ATTEMPTS + 1):
            def commit(latest: Ledger) -> Ledger:
                if not _same_word(latest.current, outgoing):
                    raise RolloverConflict("current word changed during rollover")
                if _pool_ids(latest) != pool_ids:
                    raise _PoolChanged()
                latest.current = new_word
                latest.submissions = []
                if archived is not None:
                    latest.archive.insert(0, archived)
                return latest

            try:
                await self.store.mutate(commit)
                break
            except _PoolChanged:
                if attempt == MAX_SUMMARY_ATTEMPTS:
                    raise RolloverConflict("submissions kept arriving while the day was summarized")
                logger.info("new submissions for %s during rollover, summarizing again", outgoing.word)
                archived, pool_ids = await self._archive(await self.store.read())

        if archived is not None:
            logger.info("archived %s (%s) with %d definition(s)", archived.word, archived.date,
                        len(archived.winning_definitions))
        logger.info("new word %s for %s (image=%s)", new_word.word, new_word.date, image is not None)
        return new_word, archived

    async def _archive(self, ledger: Ledger) -> Tuple[Optional[ArchivedWord], FrozenSet[str]]:
        outgoing = ledger.current
        if outgoing is None:
            return None, frozenset()
        pool_ids = _pool_ids(ledger)
        pool = [s for s in ledger.submissions if s.id in pool_ids]
        if pool:
            definitions = await self.gateway.summarize(outgoing.word, pool)
        else:
            definitions = [NO_DEFINITIONS]
        return ArchivedWord.from_word(outgoing, definitions), pool_ids

    async def _optional(self, coro, capability: str, word: str):
        try:
            return await coro
        except GenerationUnavailable as e:
            logger.warning("%s generation failed for %s, continuing without: %s", capability, word, e)
            return None
