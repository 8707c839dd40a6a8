# glimmer/rollover.py
"""
Run one lifecycle step from cron or by hand.

    python -m glimmer.rollover                  # roll over if the day changed
    python -m glimmer.rollover --close-day      # archive now and start a new word
    python -m glimmer.rollover --set-word Blorvek
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from . import config
from .db_pg import SessionLocal, engine
from .errors import GlimmerError
from .generation import GenerationGateway
from .ledger import LedgerStore
from .lifecycle import LifecycleManager

logger = logging.getLogger("glimmer.rollover")


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="glimmer.rollover", description="Advance the daily word.")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--close-day", action="store_true", help="summarize and archive the current word now")
    group.add_argument("--set-word", metavar="WORD", help="replace the current word with WORD")
    return p


async def run(args: argparse.Namespace, lifecycle: LifecycleManager) -> str:
    if args.close_day:
        archived = await lifecycle.trigger_summarization_now()
        current = (await lifecycle.store.read()).current
        return f"archived {archived.word}: {' | '.join(archived.winning_definitions)}; now {current.word}"
    if args.set_word:
        word = await lifecycle.force_set_word(args.set_word)
        return f"word set to {word.word} for {word.date}"
    word = await lifecycle.ensure_current_day()
    return f"current word {word.word} for {word.date}"


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    store = LedgerStore(SessionLocal)
    lifecycle = LifecycleManager(store, GenerationGateway.from_env())
    try:
        await store.init()
        logger.info("[rollover] %s", await run(args, lifecycle))
        return 0
    except GlimmerError as e:
        logger.error("[rollover] failed: %s", e)
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(main()))
