import os
import logging
from functools import lru_cache
from typing import Dict, List, Optional

import yaml

log = logging.getLogger("gateway")

COUNTRIES_PATH = os.getenv("COUNTRIES_PATH", "/app/data/countries.yaml")

DEFAULT_COUNTRY = "Taiwan"

# country -> response languages; the first one is the default
COUNTRY_LANGUAGES_FALLBACK: Dict[str, List[str]] = {
    "Taiwan": ["正體中文", "English"],
    "United States": ["English"],
    "European Union": ["English", "Français", "Deutsch"],
    "United Kingdom": ["English"],
    "France": ["Français", "English"],
    "Germany": ["Deutsch", "English"],
    "Japan": ["日本語", "English"],
    "South Korea": ["한국어", "English"],
    "Singapore": ["English", "中文 (简体)"],
    "Malaysia": ["Bahasa Melayu", "English", "中文 (简体)"],
    "Thailand": ["ภาษาไทย", "English"],
    "Vietnam": ["Tiếng Việt", "English"],
}

TRANSLATION_LANGUAGES = ["正體中文", "English", "日本語", "Deutsch", "Français"]

# countries whose law search prefers an official database
PRIORITY_NOTES = {
    "Taiwan": "台灣地區查詢已特別優化：AI 將優先從中華民國「全國法規資料庫」網站擷取與引用資料，以確保資訊的準確性與權威性。",
}


def _clean_table(raw) -> Dict[str, List[str]]:
    table = raw.get("countries") if isinstance(raw, dict) else None
    if not isinstance(table, dict):
        return {}
    out: Dict[str, List[str]] = {}
    for country, langs in table.items():
        if isinstance(langs, str):
            langs = [langs]
        langs = [str(l).strip() for l in (langs or []) if str(l).strip()]
        if langs:
            out[str(country)] = langs
    return out


@lru_cache(maxsize=4)
def _load(path: str) -> Dict[str, List[str]]:
    """
    Country table from YAML, shaped as:
      countries:
        Taiwan: ["正體中文", "English"]
    Falls back to the built-in table when the file is missing, unreadable or empty.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            table = _clean_table(yaml.safe_load(f) or {})
    except FileNotFoundError:
        log.info("Countries file not found at %s; using built-in table.", path)
        return dict(COUNTRY_LANGUAGES_FALLBACK)
    except (OSError, yaml.YAMLError) as e:
        log.warning("Failed to load countries file %s: %s", path, e)
        return dict(COUNTRY_LANGUAGES_FALLBACK)
    if not table:
        log.warning("Countries file %s has no usable entries; using built-in table.", path)
        return dict(COUNTRY_LANGUAGES_FALLBACK)
    return table


def load_country_languages(path: Optional[str] = None) -> Dict[str, List[str]]:
    return _load(path or COUNTRIES_PATH)


def countries() -> List[str]:
    return list(load_country_languages())


def languages_for(country: str) -> List[str]:
    return list(load_country_languages().get(country, []))


def default_language(country: str) -> str:
    langs = languages_for(country)
    return langs[0] if langs else ""


def language_locked(country: str) -> bool:
    """The language selector is disabled when there is nothing to choose."""
    return len(languages_for(country)) <= 1


def priority_note(country: str) -> str:
    return PRIORITY_NOTES.get(country, "")
