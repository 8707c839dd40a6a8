# glimmer/main.py
from __future__ import annotations

import logging
import secrets
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import config
from .db_pg import SessionLocal, ping
from .errors import (
    GenerationUnavailable,
    GlimmerError,
    NoCurrentWordError,
    NotFoundError,
    PersistenceError,
    RolloverConflict,
    ValidationError,
)
from .generation import GenerationGateway
from .ledger import LedgerStore
from .lifecycle import LifecycleManager
from .schema import ArchivedWord, ForceWordIn, Submission, SubmitIn, UsernameOut, Word
from .submissions import SubmissionIntake, random_username

logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# ───────── App ─────────
app = FastAPI(title="Glimmer API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

# ───────── Wiring ─────────
store = LedgerStore(SessionLocal)
intake = SubmissionIntake(store)
lifecycle = LifecycleManager(store, GenerationGateway.from_env())


def get_store() -> LedgerStore:
    return store


def get_intake() -> SubmissionIntake:
    return intake


def get_lifecycle() -> LifecycleManager:
    return lifecycle


def require_admin(x_admin_token: Optional[str] = Header(None)) -> None:
    if config.ADMIN_TOKEN is None:
        return
    if not x_admin_token or not secrets.compare_digest(x_admin_token, config.ADMIN_TOKEN):
        raise HTTPException(status_code=403, detail="Invalid admin token")


# ───────── Errors ─────────
_STATUS = {
    ValidationError: 400,
    NotFoundError: 404,
    NoCurrentWordError: 409,
    RolloverConflict: 409,
    GenerationUnavailable: 502,
    PersistenceError: 503,
}


@app.exception_handler(GlimmerError)
async def glimmer_error_handler(request: Request, exc: GlimmerError):
    status = next((code for cls, code in _STATUS.items() if isinstance(exc, cls)), 500)
    detail = f"Upstream failure: {exc}" if isinstance(exc, GenerationUnavailable) else str(exc)
    if status >= 500:
        logger.warning("%s %s -> %d: %s", request.method, request.url.path, status, exc)
    return JSONResponse(status_code=status, content={"detail": detail})


# ───────── Lifecycle ─────────
@app.on_event("startup")
async def on_startup():
    await ping()
    await store.init()
    if config.ADMIN_TOKEN is None:
        logger.warning("ADMIN_TOKEN is not set, admin routes are open")


@app.get("/healthz")
async def healthz():
    return {"ok": True}


# ───────── Reads ─────────
@app.get("/current", response_model=Optional[Word])
async def current_word(store: LedgerStore = Depends(get_store)):
    return (await store.read()).current


@app.get("/submissions", response_model=List[Submission])
async def list_submissions(
    order: str = Query("recent", description="'recent' (submission order) or 'top' (most liked first)"),
    intake: SubmissionIntake = Depends(get_intake),
):
    return await intake.list_submissions(order)


@app.get("/archive", response_model=List[ArchivedWord])
async def list_archive(store: LedgerStore = Depends(get_store)):
    return (await store.read()).archive


@app.get("/archive/latest", response_model=ArchivedWord)
async def latest_archived(store: LedgerStore = Depends(get_store)):
    archive = (await store.read()).archive
    if not archive:
        raise HTTPException(status_code=404, detail="Archive is empty")
    return archive[0]


@app.get("/username", response_model=UsernameOut)
async def username():
    return UsernameOut(username=random_username())


# ───────── Submissions ─────────
@app.post("/submit", response_model=Submission)
async def submit(body: SubmitIn, intake: SubmissionIntake = Depends(get_intake)):
    return await intake.submit(body.text, body.username)


@app.post("/submissions/{submission_id}/like", response_model=Submission)
async def like(submission_id: str, intake: SubmissionIntake = Depends(get_intake)):
    return await intake.like(submission_id)


# ───────── Day lifecycle ─────────
@app.post("/day", response_model=Word)
async def ensure_day(lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return await lifecycle.ensure_current_day()


@app.post("/admin/word", response_model=Word, dependencies=[Depends(require_admin)])
async def force_word(body: ForceWordIn, lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return await lifecycle.force_set_word(body.word)


@app.post("/admin/regenerate-image", response_model=Word, dependencies=[Depends(require_admin)])
async def regenerate_image(lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return await lifecycle.regenerate_image()


@app.post("/admin/summarize", response_model=ArchivedWord, dependencies=[Depends(require_admin)])
async def summarize_now(lifecycle: LifecycleManager = Depends(get_lifecycle)):
    return await lifecycle.trigger_summarization_now()
