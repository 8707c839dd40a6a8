# glimmer/generation.py
from __future__ import annotations

import asyncio
import base64
import json
import logging
import re
from typing import Any, Dict, List, Optional, Protocol, Sequence

import httpx

from . import config
from .errors import GenerationUnavailable
from .schema import Submission

logger = logging.getLogger(__name__)

MAX_WORD_LEN = 12
MAX_DEFINITIONS = 3
SUMMARY_POOL_LIMIT = 60               # most-liked submissions sent for summarization

WORD_PROMPT = (
    "Generate one single, unique, and fictional but pronounceable word that has no real-world "
    "meaning. The word should be between 6 and 12 letters long. Return only the word itself, "
    "with no explanation, punctuation, or formatting."
)
IMAGE_PROMPT = (
    "A dreamy, ethereal, abstract digital painting representing the concept of '{word}'. "
    "Soft pastel color palette, gentle gradients, sense of light and wonder, beautiful."
)
MEANING_PROMPT = (
    'Create a poetic, whimsical definition for the fictional word "{word}". '
    "Make it creative, imaginative, and 1-2 sentences long."
)
SUMMARY_PROMPT = (
    'The fictional word "{word}" was shown to a crowd, who each wrote what they think it means. '
    "Their interpretations follow, most-liked first, with like counts.\n\n{pool}\n\n"
    "Distill the crowd's favourite ideas into between 1 and {limit} short definitions of the word. "
    "Respond with a JSON array of strings and nothing else."
)

_NON_LETTERS = re.compile(r"[^A-Za-z]")
_LIST_MARKER = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


# ───────── Helpers ─────────
def normalize_word(raw: Optional[str]) -> str:
    return _NON_LETTERS.sub("", raw or "")[:MAX_WORD_LEN]


def parse_definitions(text: str) -> List[str]:
    """JSON array when the model obeys; otherwise one definition per line."""
    text = (text or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        text = text[text.find("\n") + 1:] if "\n" in text else ""
        text = text.rstrip("`").strip()
    try:
        data = json.loads(text)
    except ValueError:
        data = None
    if isinstance(data, list):
        out = [str(d).strip() for d in data if isinstance(d, (str, int, float)) and str(d).strip()]
    else:
        out = [_LIST_MARKER.sub("", line).strip().strip('"') for line in text.splitlines()]
        out = [line for line in out if line]
    return out[:MAX_DEFINITIONS]


def format_pool(submissions: Sequence[Submission]) -> str:
    ranked = sorted(submissions, key=lambda s: (-s.likes, s.created_at))[:SUMMARY_POOL_LIMIT]
    return "\n".join(f"- ({s.likes} likes) {s.text}" for s in ranked)


async def _http_post(url: str, timeout: float, transport: Optional[httpx.AsyncBaseTransport] = None,
                     **kwargs) -> httpx.Response:
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        r = await client.post(url, **kwargs)
        r.raise_for_status()
        return r


# ───────── Upstream clients ─────────
class ImageClient(Protocol):
    async def generate_image(self, prompt: str) -> bytes:
        ...


class GeminiClient:
    def __init__(self, api_key: Optional[str], text_model: str = config.GEMINI_TEXT_MODEL,
                 image_model: str = config.GEMINI_IMAGE_MODEL, api_base: str = config.GEMINI_API_BASE,
                 timeout: float = config.GENERATION_TIMEOUT_SEC,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.text_model = text_model
        self.image_model = image_model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _generate(self, model: str, body: Dict[str, Any]) -> Dict[str, Any]:
        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY is not set")
        r = await _http_post(
            f"{self.api_base}/models/{model}:generateContent",
            self.timeout,
            transport=self.transport,
            headers={"x-goog-api-key": self.api_key, "content-type": "application/json"},
            json=body,
        )
        return r.json()

    @staticmethod
    def _parts(data: Any) -> List[Dict[str, Any]]:
        if not isinstance(data, dict):
            raise RuntimeError(f"unexpected response of type {type(data).__name__}")
        candidates = data.get("candidates") or []
        if not isinstance(candidates, list) or not candidates or not isinstance(candidates[0], dict):
            raise RuntimeError("no candidates in response")
        content = candidates[0].get("content") or {}
        parts = (content.get("parts") or []) if isinstance(content, dict) else []
        if not isinstance(parts, list):
            raise RuntimeError("malformed parts in response")
        return [p for p in parts if isinstance(p, dict)]

    async def generate_text(self, prompt: str) -> str:
        data = await self._generate(self.text_model, {"contents": [{"parts": [{"text": prompt}]}]})
        return "".join(str(p.get("text") or "") for p in self._parts(data)).strip()

    async def generate_image(self, prompt: str) -> bytes:
        data = await self._generate(self.image_model, {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["IMAGE"]},
        })
        for part in self._parts(data):
            inline = part.get("inlineData") or part.get("inline_data") or {}
            if isinstance(inline, dict) and inline.get("data"):
                return base64.b64decode(inline["data"])
        raise RuntimeError("no image data in response")


class ClipDropClient:
    def __init__(self, api_key: Optional[str], url: str = config.CLIPDROP_API_URL,
                 timeout: float = config.GENERATION_TIMEOUT_SEC,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def generate_image(self, prompt: str) -> bytes:
        if not self.api_key:
            raise RuntimeError("CLIPDROP_API_KEY is not set")
        r = await _http_post(
            self.url, self.timeout, transport=self.transport,
            headers={"x-api-key": self.api_key},
            files={"prompt": (None, prompt)},
        )
        if not r.content:
            raise RuntimeError("empty image body")
        return r.content


class OpenAIImageClient:
    def __init__(self, api_key: Optional[str], model: str = config.OPENAI_IMAGE_MODEL,
                 size: str = config.OPENAI_IMAGE_SIZE, api_base: str = config.OPENAI_API_BASE,
                 timeout: float = config.GENERATION_TIMEOUT_SEC,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key
        self.model = model
        self.size = size
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def generate_image(self, prompt: str) -> bytes:
        if not self.api_key:
            raise RuntimeError("OPENAI_API_KEY is not set")
        r = await _http_post(
            f"{self.api_base}/images/generations", self.timeout, transport=self.transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={"model": self.model, "prompt": prompt, "n": 1, "size": self.size,
                  "response_format": "b64_json"},
        )
        data = r.json()
        items = (data.get("data") or []) if isinstance(data, dict) else []
        if not isinstance(items, list) or not items or not isinstance(items[0], dict) \
                or not items[0].get("b64_json"):
            raise RuntimeError("no image data in response")
        return base64.b64decode(items[0]["b64_json"])


def image_client_from_env(gemini: GeminiClient) -> Optional[ImageClient]:
    provider = config.IMAGE_PROVIDER
    if provider == "clipdrop":
        return ClipDropClient(config.CLIPDROP_API_KEY)
    if provider == "gemini":
        return gemini
    if provider == "openai":
        return OpenAIImageClient(config.OPENAI_API_KEY)
    if provider not in ("none", "off", ""):
        logger.warning("unknown IMAGE_PROVIDER %r, images disabled", provider)
    return None


# ───────── Gateway ─────────
class GenerationGateway:
    """
    Fault-isolated access to word, image, summary and meaning generation.

    Every capability is bounded by ``timeout`` and fails in one way only,
    ``GenerationUnavailable``. Whether that failure is fatal is the caller's
    decision. The gateway never touches the ledger.
    """

    def __init__(self, text: GeminiClient, image: Optional[ImageClient] = None,
                 timeout: float = config.GENERATION_TIMEOUT_SEC, enable_meaning: bool = True):
        self.text = text
        self.image = image
        self.timeout = timeout
        self.enable_meaning = enable_meaning

    @classmethod
    def from_env(cls) -> "GenerationGateway":
        gemini = GeminiClient(config.GEMINI_API_KEY)
        return cls(
            text=gemini,
            image=image_client_from_env(gemini),
            timeout=config.GENERATION_TIMEOUT_SEC,
            enable_meaning=config.ENABLE_AI_MEANING,
        )

    async def _call(self, capability: str, coro):
        try:
            return await asyncio.wait_for(coro, timeout=self.timeout)
        except asyncio.TimeoutError:
            raise GenerationUnavailable(capability, f"timed out after {self.timeout:g}s") from None
        except httpx.HTTPStatusError as e:
            raise GenerationUnavailable(capability, f"HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, RuntimeError, ValueError, KeyError, IndexError, TypeError,
                AttributeError) as e:
            raise GenerationUnavailable(capability, str(e) or type(e).__name__) from e

    async def generate_word(self) -> str:
        raw = await self._call("word", self.text.generate_text(WORD_PROMPT))
        word = normalize_word(raw)
        if not word:
            raise GenerationUnavailable("word", f"unusable response {raw!r}")
        return word

    async def generate_image(self, word: str) -> bytes:
        if self.image is None:
            raise GenerationUnavailable("image", "no image provider configured")
        return await self._call("image", self.image.generate_image(IMAGE_PROMPT.format(word=word)))

    async def summarize(self, word: str, submissions: Sequence[Submission]) -> List[str]:
        """
        Condense a non-empty pool into at most ``MAX_DEFINITIONS`` definitions.

        An empty pool is a caller bug, not an upstream failure, so it raises
        ``ValueError`` rather than ``GenerationUnavailable``.
        """
        if not submissions:
            # the sentinel is the caller's job
            raise ValueError("summarize() needs at least one submission")
        prompt = SUMMARY_PROMPT.format(word=word, pool=format_pool(submissions), limit=MAX_DEFINITIONS)
        definitions = parse_definitions(await self._call("summary", self.text.generate_text(prompt)))
        if not definitions:
            raise GenerationUnavailable("summary", "no definitions in response")
        return definitions

    async def define(self, word: str) -> str:
        if not self.enable_meaning:
            raise GenerationUnavailable("meaning", "disabled")
        meaning = await self._call("meaning", self.text.generate_text(MEANING_PROMPT.format(word=word)))
        if not meaning:
            raise GenerationUnavailable("meaning", "empty response")
        return meaning
