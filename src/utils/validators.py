"""Request validation helpers for the chatbot endpoint."""

import re
from typing import Any

from utils.error_handling import ValidationError

_DANGEROUS_PATTERNS = re.compile(
    r"<script|javascript:|data:text/html|vbscript:|onload=|onerror=", re.IGNORECASE
)


def validate_message(message: Any, user_id: Any = None, max_length: int = 500) -> None:
    """
    Reject payloads we never want to run through the pipeline.

    Empty messages are not rejected here; the caller answers those with a
    friendly prompt instead of an error.
    """
    if message is None or not isinstance(message, str):
        raise ValidationError("Message must be a non-empty string")
    if len(message) > max_length:
        raise ValidationError(f"Message too long (max {max_length} characters)")
    if user_id is not None and not isinstance(user_id, str):
        raise ValidationError("UserId must be a string")
    if _DANGEROUS_PATTERNS.search(message):
        raise ValidationError("Invalid message content")
