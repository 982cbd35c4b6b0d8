# portfolio/validators.py
import re
import unicodedata
from datetime import timedelta
from typing import Optional

MAX_QUESTION_CHARS     = 3000
MAX_REQUESTER_ID_CHARS = 100
MAX_GAP_MINUTES        = 1440  # 24h

_SAFE_CATEGORIES = ("L", "N", "P", "Z")
_CONTROL = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def _is_safe(s: str) -> bool:
    return all(unicodedata.category(ch)[0] in _SAFE_CATEGORIES for ch in s)


def sanitize(s: Optional[str]) -> Optional[str]:
    if s is None:
        return None
    return " ".join(_CONTROL.sub("", s).split())


def clean_question(q) -> str:
    q = (q or "").strip() if isinstance(q, str) else ""
    if not q:
        raise ValueError("Please enter a question.")
    if len(q) > MAX_QUESTION_CHARS:
        raise ValueError("Prompt too long")
    return q


def clean_requester_id(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    if not isinstance(raw, str) or not raw.strip() or len(raw) > MAX_REQUESTER_ID_CHARS \
            or not _is_safe(raw):
        raise ValueError("Invalid requester ID format")
    return sanitize(raw)


def clean_gap_minutes(raw: Optional[str]) -> Optional[timedelta]:
    if raw is None or raw == "":
        return None
    try:
        minutes = int(raw)
    except (TypeError, ValueError):
        raise ValueError("Gap minutes must be an integer")
    if minutes < 0 or minutes > MAX_GAP_MINUTES:
        raise ValueError(f"Gap minutes must be between 0 and {MAX_GAP_MINUTES}")
    return timedelta(minutes=minutes)


def clean_conversation_id(raw) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError("Invalid conversation ID")
    if value < 1:
        raise ValueError("Invalid conversation ID")
    return value
