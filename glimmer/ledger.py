# glimmer/ledger.py
from __future__ import annotations

import asyncio
import logging
from typing import Callable

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .config import LEDGER_KEY
from .db_pg import Base
from .errors import PersistenceError
from .models import LedgerDocument
from .schema import Ledger

logger = logging.getLogger(__name__)

Mutation = Callable[[Ledger], Ledger]


class LedgerStore:
    """
    Sole owner of the persisted ledger document.

    ``read`` opens its own session and never waits on writers; the document is
    replaced as one row in one transaction, so a reader sees either the state
    before a mutation or the state after it.

    ``mutate`` is the only way to change the ledger. Calls are serialized by an
    asyncio lock (FIFO, so applied in invocation order) and, on PostgreSQL, by a
    row lock as well, which keeps several worker processes from interleaving.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], key: str = LEDGER_KEY):
        self._sessionmaker = sessionmaker
        self.key = key
        self._lock = asyncio.Lock()

    async def init(self) -> None:
        """Create the table and seed an empty document if there is none."""
        try:
            async with self._sessionmaker() as session:
                conn = await session.connection()
                await conn.run_sync(Base.metadata.create_all)
                if await session.get(LedgerDocument, self.key) is None:
                    session.add(LedgerDocument(key=self.key, doc=Ledger().model_dump(mode="json")))
                await session.commit()
        except IntegrityError:
            # another worker seeded it first
            logger.debug("ledger %s already seeded", self.key)
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"could not initialise ledger: {e}") from e

    async def read(self) -> Ledger:
        try:
            async with self._sessionmaker() as session:
                row = await session.get(LedgerDocument, self.key)
                return Ledger.model_validate(row.doc) if row is not None else Ledger()
        except (SQLAlchemyError, OSError) as e:
            raise PersistenceError(f"could not read ledger: {e}") from e

    async def mutate(self, fn: Mutation) -> Ledger:
        """
        Apply ``fn`` to the latest ledger and persist the result atomically.

        Any exception raised by ``fn`` aborts the transaction and propagates
        unchanged; storage failures surface as ``PersistenceError``. In both
        cases the durable state is left as it was.
        """
        async with self._lock:
            try:
                async with self._sessionmaker() as session:
                    async with session.begin():
                        row = await session.get(LedgerDocument, self.key, with_for_update=True)
                        current = Ledger.model_validate(row.doc) if row is not None else Ledger()
                        updated = fn(current)
                        payload = updated.model_dump(mode="json")
                        if row is None:
                            session.add(LedgerDocument(key=self.key, doc=payload))
                        else:
                            row.doc = payload
                return updated
            except (SQLAlchemyError, OSError) as e:
                logger.error("ledger write failed: %s", e)
                raise PersistenceError(f"could not write ledger: {e}") from e
