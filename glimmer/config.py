# glimmer/config.py
from __future__ import annotations

import os
from pathlib import Path

import pytz
from dotenv import load_dotenv

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"
if _ENV_FILE.exists():
    load_dotenv(_ENV_FILE)


def _env_bool(key: str, default: bool) -> bool:
    val = os.getenv(key, "").strip().lower()
    if val in ("1", "true", "yes", "on"):
        return True
    if val in ("0", "false", "no", "off"):
        return False
    return default


def _env_float(key: str, default: float) -> float:
    try:
        return float(os.getenv(key, str(default)))
    except ValueError:
        return default


# ───────── Storage ─────────
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./glimmer.db")
LEDGER_KEY = os.getenv("LEDGER_KEY", "default")

# ───────── Day boundary ─────────
TZ = pytz.timezone(os.getenv("GLIMMER_TZ", "UTC"))

# ───────── Generation ─────────
GENERATION_TIMEOUT_SEC = _env_float("GENERATION_TIMEOUT_SEC", 20.0)
ENABLE_AI_MEANING = _env_bool("ENABLE_AI_MEANING", True)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_API_BASE = os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_TEXT_MODEL = os.getenv("GEMINI_TEXT_MODEL", "gemini-2.5-flash")
GEMINI_IMAGE_MODEL = os.getenv("GEMINI_IMAGE_MODEL", "gemini-2.5-flash-image")

IMAGE_PROVIDER = os.getenv("IMAGE_PROVIDER", "clipdrop").strip().lower()   # clipdrop | gemini | openai | none
CLIPDROP_API_KEY = os.getenv("CLIPDROP_API_KEY")
CLIPDROP_API_URL = os.getenv("CLIPDROP_API_URL", "https://clipdrop-api.co/text-to-image/v1")
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "https://api.openai.com/v1")
OPENAI_IMAGE_MODEL = os.getenv("OPENAI_IMAGE_MODEL", "dall-e-2")
OPENAI_IMAGE_SIZE = os.getenv("OPENAI_IMAGE_SIZE", "512x512")

# ───────── HTTP ─────────
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN") or None
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
