"""
Text normalization shared by every match strategy.

Comparisons are case-, accent- and punctuation-insensitive so that
"Xin Chào!" and "xin chao" land on the same canonical form.
"""

import re
import unicodedata
from typing import List, Optional

from utils.settings import MIN_TOKEN_LENGTH

_WHITESPACE = re.compile(r"\s+")
_NON_WORD = re.compile(r"[^\w\s]|_")

# Vietnamese tone-mark families folded to their base vowel.
_VIETNAMESE_FOLDS = (
    (re.compile(r"[áàảãạăắằẳẵặâấầẩẫậ]"), "a"),
    (re.compile(r"[éèẻẽẹêếềểễệ]"), "e"),
    (re.compile(r"[íìỉĩị]"), "i"),
    (re.compile(r"[óòỏõọôốồổỗộơớờởỡợ]"), "o"),
    (re.compile(r"[úùủũụưứừửữự]"), "u"),
    (re.compile(r"[ýỳỷỹỵ]"), "y"),
    (re.compile(r"đ"), "d"),
)


def _fold_diacritics(text: str) -> str:
    for pattern, base in _VIETNAMESE_FOLDS:
        text = pattern.sub(base, text)
    # Anything the table does not cover (é from other languages, etc.).
    decomposed = unicodedata.normalize("NFKD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.lower()


def normalize_text(text: Optional[str]) -> str:
    """Return the canonical comparison form of ``text``; empty input gives ""."""
    if not text:
        return ""

    value = text.lower().strip()
    value = _WHITESPACE.sub(" ", value)
    value = _fold_diacritics(value)
    value = _NON_WORD.sub(" ", value)
    value = _WHITESPACE.sub(" ", value)
    return value.strip()


def tokenize(text: Optional[str], min_length: int = MIN_TOKEN_LENGTH) -> List[str]:
    """Normalize and split into tokens, dropping ones shorter than ``min_length``."""
    normalized = normalize_text(text)
    if not normalized:
        return []
    return [token for token in normalized.split(" ") if len(token) >= min_length]


def split_aliases(question: Optional[str]) -> List[str]:
    """Split a stored question that packs several comma-separated alias phrases."""
    if not question:
        return []
    return [alias.strip() for alias in question.split(",") if alias.strip()]
