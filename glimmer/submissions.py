# glimmer/submissions.py
from __future__ import annotations

import logging
import secrets
import uuid
from typing import List, Optional

from .errors import NoCurrentWordError, NotFoundError, ValidationError
from .ledger import LedgerStore
from .schema import Ledger, Submission

logger = logging.getLogger(__name__)

MAX_TEXT_LEN = 280
MAX_USERNAME_LEN = 40

ADJECTIVES = ["Curious", "Sleepy", "Quantum", "Chaotic", "Dreamy", "Vivid"]
NOUNS = ["Duck", "Neuron", "Pixel", "Orb", "Molecule", "Quasar"]


def random_username() -> str:
    return f"{secrets.choice(ADJECTIVES)}-{secrets.choice(NOUNS)}-{secrets.randbelow(99) + 1}"


def clean_text(text: Optional[str]) -> str:
    t = (text or "").strip()
    if not t:
        raise ValidationError("text is required")
    if len(t) > MAX_TEXT_LEN:
        raise ValidationError(f"text must be at most {MAX_TEXT_LEN} characters")
    return t


def clean_username(username: Optional[str]) -> str:
    u = (username or "").strip()
    if not u:
        return random_username()
    if len(u) > MAX_USERNAME_LEN:
        raise ValidationError(f"username must be at most {MAX_USERNAME_LEN} characters")
    return u


class SubmissionIntake:
    def __init__(self, store: LedgerStore):
        self.store = store

    async def submit(self, text: Optional[str], username: Optional[str] = None) -> Submission:
        body = clean_text(text)
        user = clean_username(username)
        sub_id = uuid.uuid4().hex
        created: List[Submission] = []

        def append(ledger: Ledger) -> Ledger:
            # stamp with the word current at write time, not at request time
            if ledger.current is None:
                raise NoCurrentWordError("there is no word to interpret yet")
            sub = Submission(id=sub_id, text=body, username=user, likes=0, word=ledger.current.word)
            ledger.submissions.append(sub)
            created.append(sub)
            return ledger

        await self.store.mutate(append)
        logger.info("submission %s by %s for %s", sub_id, user, created[0].word)
        return created[0]

    async def like(self, submission_id: str) -> Submission:
        liked: List[Submission] = []

        def bump(ledger: Ledger) -> Ledger:
            for sub in ledger.submissions:
                if sub.id == submission_id:
                    sub.likes += 1
                    liked.append(sub)
                    return ledger
            raise NotFoundError(f"submission {submission_id} not found")

        await self.store.mutate(bump)
        return liked[0]

    async def list_submissions(self, order: str = "recent") -> List[Submission]:
        if order not in ("recent", "top"):
            raise ValidationError("order must be 'recent' or 'top'")
        subs = (await self.store.read()).submissions
        if order == "top":
            return sorted(subs, key=lambda s: (-s.likes, s.created_at))
        return subs
