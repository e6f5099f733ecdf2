import logging
import random
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional
from urllib.parse import quote

from pydantic import ValidationError

from . import client
from .client import ResearcherError
from .models import Policy, Regulation, SearchResponse, Tab

log = logging.getLogger("gateway")

MSG_EMPTY_QUERY = "請輸入查詢內容。"
MSG_UNPARSEABLE = "AI 回應的格式無法解析或不符合來源要求，但已顯示原始文字內容。"
MSG_NOT_FOUND = "找不到相關資訊，請嘗試使用不同的關鍵字或情境描述。"
MSG_UNKNOWN = "查詢時發生未知的錯誤，請稍後再試。"
MSG_TRANSLATE_FAILED = "翻譯失敗，請稍後再試。"

PROGRESS_TICK_SECONDS = 0.4
PROGRESS_LINGER_SECONDS = 0.5
PROGRESS_CAP = 95.0


class Phase(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    RESULTS = "results"
    RAW = "raw"
    ERROR = "error"


class ProgressSimulator:
    """
    Cosmetic progress while the single in-flight request runs.
    Fast below 50, slower below 80, crawling after that; parks at 95 until finish().
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self.value = 0.0
        self.running = False

    def start(self):
        self.value = 0.0
        self.running = True

    def tick(self) -> float:
        if not self.running:
            return self.value
        if self.value >= PROGRESS_CAP:
            self.value = PROGRESS_CAP
            self.running = False
        elif self.value < 50:
            self.value += self._rng.random() * 5
        elif self.value < 80:
            self.value += self._rng.random() * 3
        else:
            self.value += self._rng.random() * 1.5
        return self.value

    def finish(self):
        self.running = False
        self.value = 100.0

    @property
    def display(self) -> float:
        return min(100.0, max(0.0, self.value))

    @property
    def percent(self) -> int:
        # half-up, display is never negative
        return int(self.display + 0.5)

    def label(self) -> str:
        return f"AI 正在查詢與分析法規... {self.percent}%"


@dataclass
class SearchPanel:
    """State of one search tab. Country and language live outside, shared by both tabs."""

    tab: Tab
    loading: bool = False
    records: List[Any] = field(default_factory=list)
    raw_text: Optional[str] = None
    sources: List[Any] = field(default_factory=list)
    error: Optional[str] = None
    progress: ProgressSimulator = field(default_factory=ProgressSimulator)

    @property
    def phase(self) -> Phase:
        if self.loading:
            return Phase.LOADING
        if self.records:
            return Phase.RESULTS
        if self.raw_text:
            return Phase.RAW
        if self.error:
            return Phase.ERROR
        return Phase.IDLE

    @property
    def show_initial(self) -> bool:
        return not self.loading and not self.records and self.raw_text is None and self.error is None

    def submit(self, query: str) -> bool:
        """Returns False (and sets an error) when there is nothing to search for."""
        if not (query or "").strip():
            self.error = MSG_EMPTY_QUERY
            return False
        self.loading = True
        self.error = None
        self.records = []
        self.raw_text = None
        self.sources = []
        self.progress.start()
        return True

    def apply_response(self, resp: SearchResponse):
        # usable only with both records and sources
        if resp.records and resp.sources:
            self.records = list(resp.records)
            self.sources = list(resp.sources)
            self.raw_text = None
            self.error = None
        else:
            self.records = []
            self.sources = []
            trimmed = (resp.raw_text or "").strip()
            meaningful = bool(trimmed) and trimmed != "[]"
            self.raw_text = trimmed if meaningful else None
            self.error = MSG_UNPARSEABLE if meaningful else MSG_NOT_FOUND
        self.progress.finish()

    def fail(self, message: Optional[str] = None):
        self.error = message or MSG_UNKNOWN
        self.progress.finish()

    def settle(self):
        self.loading = False


_MD_LABEL_SPECIALS = re.compile(r"([\\\[\]*_`])")


def _link_uri(uri: str) -> str:
    return quote(uri, safe=":/?#@!$&'*+,;=%~-._")


def _link_label(label: str) -> str:
    return _MD_LABEL_SPECIALS.sub(r"\\\1", label)


def source_links(sources) -> str:
    """Markdown bullet list of source links; titles are escaped and URIs percent-encoded."""
    return "\n".join(f"- [{_link_label(s.label)}]({_link_uri(s.uri)})" for s in sources)


def translation_texts(record) -> List[str]:
    if isinstance(record, Regulation):
        return [record.content, record.penalty or ""]
    if isinstance(record, Policy):
        return [record.summary, *record.key_points]
    raise TypeError(f"cannot translate {type(record).__name__}")


def translation_fields(record, translations: List[str]) -> Dict[str, Any]:
    expected = len(translation_texts(record))
    if len(translations) != expected:
        raise ValueError(f"expected {expected} translations, got {len(translations)}")
    if isinstance(record, Regulation):
        content, penalty = translations
        return {"content": content, "penalty": penalty}
    summary, *points = translations
    return {"summary": summary, "key_points": points}


@dataclass
class CardTranslation:
    lang: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    translating: bool = False
    error: Optional[str] = None

    def needs(self, lang: str) -> bool:
        return not (self.fields and self.lang == lang)

    def begin(self):
        self.translating = True
        self.error = None
        self.lang = None
        self.fields = {}

    def succeed(self, lang: str, fields: Dict[str, Any]):
        self.lang = lang
        self.fields = fields

    def fail(self, message: Optional[str] = None):
        self.error = message or MSG_TRANSLATE_FAILED


async def translate_card(card: CardTranslation, record, lang: str,
                         translate: Callable[[List[str], str], Awaitable[List[str]]]) -> bool:
    """Translate one result card in place. Returns False when it was already in `lang`."""
    if not card.needs(lang):
        return False
    card.begin()
    try:
        out = await translate(translation_texts(record), lang)
        card.succeed(lang, translation_fields(record, out))
    except ResearcherError as e:
        card.fail(e.message)
    except Exception:
        log.exception("card translation failed")
        card.fail(None)
    finally:
        card.translating = False
    return True


async def run_search(tab: Tab, query: str, country: str, language: str,
                     filters: Optional[Dict[str, Any]] = None) -> SearchResponse:
    fn = client.search_regulations if tab is Tab.LAW else client.search_policies
    payload = await fn(query, country, language, filters)
    if not isinstance(payload, dict):
        raise ResearcherError(None)
    try:
        return SearchResponse.from_wire(tab, payload)
    except (ValidationError, TypeError) as e:
        raise ResearcherError(None) from e
