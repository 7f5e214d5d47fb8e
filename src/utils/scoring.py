"""Similarity scores and the confidence banding applied on top of them."""

import math
from typing import Iterable, Optional, Sequence, Set

from utils.settings import MIN_TOKEN_LENGTH
from utils.text import tokenize


def token_set(text: Optional[str], min_length: int = MIN_TOKEN_LENGTH) -> Set[str]:
    return set(tokenize(text, min_length=min_length))


def jaccard_tokens(left: Set[str], right: Set[str]) -> float:
    """Jaccard index of two token sets; 0.0 if either side is empty."""
    if not left or not right:
        return 0.0
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def jaccard_similarity(
    query: Optional[str], target: Optional[str], min_length: int = MIN_TOKEN_LENGTH
) -> float:
    """Symmetric lexical similarity in [0, 1] over normalized tokens."""
    return jaccard_tokens(
        token_set(query, min_length=min_length),
        token_set(target, min_length=min_length),
    )


def confidence_level(similarity: float) -> float:
    """
    Map a raw similarity onto the confidence bands shown to operators.

    >= 1.0 -> 1.0, [0.9, 1.0) -> 0.95, [0.8, 0.9) -> 0.85,
    [0.7, 0.8) -> 0.75, anything lower passes through unchanged.
    """
    if similarity >= 1.0:
        return 1.0
    if similarity >= 0.9:
        return 0.95
    if similarity >= 0.8:
        return 0.85
    if similarity >= 0.7:
        return 0.75
    return max(0.0, similarity)


def _norm(vector: Iterable[float]) -> float:
    return math.sqrt(sum(value * value for value in vector))


def cosine_similarity(left: Sequence[float], right: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for zero or mismatched vectors."""
    if not left or not right or len(left) != len(right):
        return 0.0
    left_norm = _norm(left)
    right_norm = _norm(right)
    if left_norm == 0 or right_norm == 0:
        return 0.0
    dot = sum(a * b for a, b in zip(left, right))
    return max(-1.0, min(1.0, dot / (left_norm * right_norm)))
