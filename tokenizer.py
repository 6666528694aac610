# tokenizer.py - split input lines and PATH values into tokens
from __future__ import annotations
import re
from typing import Iterable

WHITESPACE = " \t\r\n\v\f"
PATH_SEPARATOR = ":"


class AllocationError(MemoryError):
    """Raised when the token list cannot be built."""


def tokenize(text: str, separators: Iterable[str] = WHITESPACE) -> list[str]:
    """Split text at every run of separator characters.
    Separators never end up in a token and no empty tokens are produced,
    so empty or separator-only input gives []."""
    seps = "".join(separators)
    if not text:
        return []
    if not seps:
        return [text]
    pattern = "[" + re.escape(seps) + "]+"
    try:
        return [tok for tok in re.split(pattern, text) if tok]
    except MemoryError as e:
        raise AllocationError(f"unable to allocate tokens: {e}") from e
