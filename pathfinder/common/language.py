"""
Language Detection

Guesses the language of raw user input when the classifier could not tell
us, so fallback responses can still be rendered in the user's language.
Uses langdetect, cross-checked against the Unicode script of the text.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from langdetect import DetectorFactory, LangDetectException, detect_langs

# Seed langdetect for deterministic results
DetectorFactory.seed = 0

# Hangul, Kana and CJK ideographs
_NON_LATIN_RE = re.compile(
    r'[\u1100-\u11FF\u3040-\u309F\u30A0-\u30FF\u3130-\u318F'
    r'\u3400-\u4DBF\u4E00-\u9FFF\uAC00-\uD7AF]'
)

_SCRIPT_RANGES = [
    (0xAC00, 0xD7AF, "Hangul", "ko"),
    (0x1100, 0x11FF, "Hangul", "ko"),
    (0x3130, 0x318F, "Hangul", "ko"),
    (0x3040, 0x309F, "Kana", "ja"),
    (0x30A0, 0x30FF, "Kana", "ja"),
    (0x4E00, 0x9FFF, "CJK", "zh"),
    (0x3400, 0x4DBF, "CJK", "zh"),
]


@dataclass(frozen=True)
class LanguageInfo:
    """Detected language information"""
    code: str           # ISO 639-1: "en", "ko", "ja"
    confidence: float   # 0.0~1.0
    script: str         # "Latin", "Hangul", "CJK", "Kana"


def _detect_script(text: str) -> tuple:
    """Return (script, language code) for the dominant non-Latin script, if any."""
    counts = {}
    for ch in text:
        cp = ord(ch)
        for start, end, script, lang in _SCRIPT_RANGES:
            if start <= cp <= end:
                counts[(script, lang)] = counts.get((script, lang), 0) + 1
                break

    if not counts:
        return "Latin", None

    # Japanese mixes Kanji with Kana
    if any(script == "Kana" for script, _ in counts):
        return "Kana", "ja"
    script, lang = max(counts, key=counts.get)
    return script, lang


def detect_language(text: str) -> LanguageInfo:
    """Detect the language of input text.

    Latin-only text is treated as English: langdetect regularly mislabels
    short English requests as Dutch, Afrikaans and the like.
    """
    cleaned = (text or "").strip()
    if not cleaned:
        return LanguageInfo(code="en", confidence=1.0, script="Latin")

    script, script_lang = _detect_script(cleaned)
    if not _NON_LATIN_RE.search(cleaned):
        return LanguageInfo(code="en", confidence=0.5, script="Latin")

    try:
        results = detect_langs(cleaned)
    except LangDetectException:
        results = []

    if results and len(cleaned) >= 10:
        top = results[0]
        return LanguageInfo(code=top.lang.split("-")[0], confidence=round(top.prob, 4), script=script)

    return LanguageInfo(code=script_lang or "en", confidence=0.7, script=script)


def resolve_language(text: str, supported: Iterable[str], default: str) -> str:
    """Detected language if it is one of ``supported``, otherwise ``default``."""
    code = detect_language(text).code
    return code if code in set(supported) else default


def normalize_language(code: Optional[str], default: str) -> str:
    """Lower-case a language tag and strip any region suffix."""
    if not code or not isinstance(code, str):
        return default
    return code.strip().lower().replace("_", "-").split("-")[0] or default
