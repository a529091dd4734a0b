"""
Locale resolution.

URLs may carry a locale prefix (/hi/dashboard). English is the default and
also the fallback for any message a locale's catalog does not translate.
"""

import json
import logging
import os
from functools import lru_cache
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "en"

# English plus the 22 languages of the Eighth Schedule
LOCALES = [
    "en", "hi", "bn", "te", "mr", "ta", "ur", "gu", "kn", "ml", "or", "pa",
    "as", "mai", "sa", "sat", "ks", "ne", "sd", "gom", "mni", "doi", "brx",
]

LANGUAGE_NAMES = {
    "en": "English",
    "hi": "हिंदी",
    "bn": "বাংলা",
    "te": "తెలుగు",
    "mr": "मराठी",
    "ta": "தமிழ்",
    "ur": "اردو",
    "gu": "ગુજરાતી",
    "kn": "ಕನ್ನಡ",
    "ml": "മലയാളം",
    "or": "ଓଡିଆ",
    "pa": "ਪੰਜਾਬੀ",
    "as": "অসমীয়া",
    "mai": "मैथिली",
    "sa": "संस्कृतम्",
    "sat": "Santali",
    "ks": "کٲشُر",
    "ne": "नेपाली",
    "sd": "سنڌي",
    "gom": "कोंकणी",
    "mni": "Manipuri",
    "doi": "डोगरी",
    "brx": "बर'",
}

MESSAGES_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "messages")


def is_supported(locale: Optional[str]) -> bool:
    return locale in LOCALES


def split_locale_path(path: str) -> Tuple[Optional[str], str]:
    """
    Split "/hi/report/new" into ("hi", "/report/new").
    Paths without a supported locale prefix come back as (None, path).
    """
    segments = path.split("/")
    if len(segments) > 1 and segments[1] in LOCALES:
        rest = "/" + "/".join(segments[2:])
        return segments[1], rest
    return None, path or "/"


def locale_root(locale: Optional[str]) -> str:
    return f"/{locale}" if locale else "/"


def switch_locale_path(path: str, new_locale: str) -> str:
    """The same page under another locale prefix."""
    if not is_supported(new_locale):
        raise ValueError(f"Unsupported locale: {new_locale}")
    _, rest = split_locale_path(path)
    return f"/{new_locale}" if rest == "/" else f"/{new_locale}{rest}"


def negotiate_locale(accept_language: Optional[str]) -> str:
    """Best supported locale for an Accept-Language header, else the default."""
    if not accept_language:
        return DEFAULT_LOCALE

    candidates: List[Tuple[float, int, str]] = []
    for index, part in enumerate(accept_language.split(",")):
        piece = part.strip()
        if not piece:
            continue
        tag, _, params = piece.partition(";")
        quality = 1.0
        if params.strip().startswith("q="):
            try:
                quality = float(params.strip()[2:])
            except ValueError:
                quality = 0.0
        candidates.append((quality, index, tag.strip().lower()))

    for quality, _, tag in sorted(candidates, key=lambda c: (-c[0], c[1])):
        if quality <= 0:
            continue
        primary = tag.split("-")[0]
        if primary in LOCALES:
            return primary
    return DEFAULT_LOCALE


@lru_cache(maxsize=None)
def _load_catalog(locale: str) -> Dict[str, Any]:
    path = os.path.join(MESSAGES_DIR, f"{locale}.json")
    if not os.path.exists(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_messages(locale: str) -> Dict[str, Any]:
    """Message catalog for a locale, with English filling the gaps."""
    if not is_supported(locale):
        raise ValueError(f"Unsupported locale: {locale}")
    base = _load_catalog(DEFAULT_LOCALE)
    if locale == DEFAULT_LOCALE:
        return base
    return _merge(base, _load_catalog(locale))


def translate(locale: str, key: str) -> str:
    """Look up a dotted key ("navigation.home"); the key itself when missing."""
    node: Any = get_messages(locale)
    for part in key.split("."):
        if not isinstance(node, dict) or part not in node:
            logger.debug(f"Missing translation for '{key}' ({locale})")
            return key
        node = node[part]
    return node if isinstance(node, str) else key
