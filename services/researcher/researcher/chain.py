import os
import asyncio
import logging
from typing import Any, List, Optional, Tuple

from google import genai
from google.genai import errors, types

from .models import (
    GroundingSource,
    Policy,
    PolicyFilters,
    PolicySearchResult,
    Regulation,
    RegulationFilters,
    RegulationSearchResult,
)
from .parsing import extract_sources, parse_records
from .prompts import build_policy_prompt, build_regulation_prompt, build_translation_prompt

logging.basicConfig(level=logging.INFO)
log = logging.getLogger("researcher")

MODEL_NAME = os.getenv("MODEL_NAME", "gemini-2.5-flash")
LLM_MAX_RETRIES = int(os.getenv("LLM_MAX_RETRIES", "2"))
LLM_RETRY_BACKOFF = float(os.getenv("LLM_RETRY_BACKOFF", "1.5"))

MISSING_KEY_MSG = "API 金鑰未在環境變數中設定。請檢查您的部署設定。"
SERVICE_ERROR_MSG = "與 AI 服務通訊時發生錯誤。"
TRANSLATE_ERROR_MSG = "翻譯時發生錯誤。"

# transport-level failures; provider errors are judged by status code
_TRANSIENT_MARKERS = (
    "disconnected", "timeout", "timed out", "temporarily unavailable",
    "unavailable", "overloaded", "deadline",
)
_TRANSIENT_CODES = (500, 502, 503, 504)


class ResearchError(Exception):
    """The LLM provider failed; the message is safe to show to users."""


class MissingApiKeyError(ResearchError):
    pass


# -------------------- helpers --------------------

def _api_key() -> Optional[str]:
    return os.getenv("GEMINI_API_KEY") or os.getenv("API_KEY")


def _make_client():
    key = _api_key()
    if not key:
        raise MissingApiKeyError(MISSING_KEY_MSG)
    return genai.Client(api_key=key)


def _is_transient(e: Exception) -> bool:
    if isinstance(e, errors.APIError):
        return e.code in _TRANSIENT_CODES
    if isinstance(e, asyncio.TimeoutError):
        return True
    msg = str(e).lower()
    return any(k in msg for k in _TRANSIENT_MARKERS)


def _response_text(resp: Any) -> str:
    return (getattr(resp, "text", None) or "").strip()

# -------------------- main class --------------------

class GroundedResearcher:
    """
    Answers legal / policy questions with a search-grounded Gemini call.

    The model is told to answer only from Google Search results and to emit a
    JSON array; parsing is best effort and falls back to the raw text.
    """

    def __init__(self, client=None, model: Optional[str] = None,
                 max_retries: Optional[int] = None, retry_backoff: Optional[float] = None):
        self._client = client
        self.model = model or MODEL_NAME
        self.max_retries = LLM_MAX_RETRIES if max_retries is None else max_retries
        self.retry_backoff = LLM_RETRY_BACKOFF if retry_backoff is None else retry_backoff

    @property
    def client(self):
        if self._client is None:
            self._client = _make_client()
        return self._client

    # ---------- helpers ----------

    async def _generate(self, client, contents: str, system_instruction: Optional[str] = None, grounded: bool = False):
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(google_search=types.GoogleSearch())] if grounded else None,
        )
        attempt = 0
        while True:
            try:
                return await client.aio.models.generate_content(
                    model=self.model,
                    contents=contents,
                    config=config,
                )
            except Exception as e:
                if attempt < self.max_retries and _is_transient(e):
                    attempt += 1
                    wait = self.retry_backoff * attempt
                    log.warning("Gemini call failed (attempt %d/%d): %s. Retrying in %.1fs",
                                attempt, self.max_retries + 1, str(e)[:100], wait)
                    await asyncio.sleep(wait)
                    continue
                raise

    async def _grounded(self, system_instruction: str, contents: str, what: str) -> Tuple[str, List[GroundingSource]]:
        client = self.client  # MissingApiKeyError surfaces as-is
        try:
            resp = await self._generate(client, contents, system_instruction=system_instruction, grounded=True)
        except Exception as e:
            log.exception("Error fetching %s from Gemini API: %s", what, e)
            raise ResearchError(SERVICE_ERROR_MSG) from e
        return _response_text(resp), extract_sources(resp)

    # ---------- main ----------

    async def fetch_regulations(self, query: str, country: str, language: str,
                                filters: Optional[RegulationFilters] = None) -> RegulationSearchResult:
        filters = filters or RegulationFilters()
        system, contents = build_regulation_prompt(query, country, language, filters)
        raw_text, sources = await self._grounded(system, contents, "regulations")
        regulations = parse_records(raw_text, Regulation)
        log.info("regulations: parsed=%s records=%d sources=%d",
                 regulations is not None, len(regulations or []), len(sources))
        return RegulationSearchResult(regulations=regulations, raw_text=raw_text, sources=sources)

    async def fetch_policies(self, query: str, country: str, language: str,
                             filters: Optional[PolicyFilters] = None) -> PolicySearchResult:
        filters = filters or PolicyFilters()
        system, contents = build_policy_prompt(query, country, language, filters)
        raw_text, sources = await self._grounded(system, contents, "policies")
        policies = parse_records(raw_text, Policy)
        log.info("policies: parsed=%s records=%d sources=%d",
                 policies is not None, len(policies or []), len(sources))
        return PolicySearchResult(policies=policies, raw_text=raw_text, sources=sources)

    async def translate_text(self, text: str, target_language: str) -> str:
        if not text:
            return ""
        client = self.client
        try:
            resp = await self._generate(client, build_translation_prompt(text, target_language))
        except Exception as e:
            log.exception("Error translating text with Gemini API: %s", e)
            raise ResearchError(TRANSLATE_ERROR_MSG) from e
        return _response_text(resp)

    async def translate_many(self, texts: List[str], target_language: str) -> List[str]:
        return list(await asyncio.gather(*(self.translate_text(t, target_language) for t in texts)))
