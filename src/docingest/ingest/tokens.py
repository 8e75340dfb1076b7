"""Token counting shared by every chunk-size decision."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import List

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@lru_cache()
def get_encoding() -> "tiktoken.Encoding":
    """Return the cached tokenizer configured through ``INGEST_TOKEN_ENCODING``."""

    return tiktoken.get_encoding(os.getenv("INGEST_TOKEN_ENCODING", DEFAULT_ENCODING))


def tokenize(text: str) -> List[int]:
    if not text or not text.strip():
        return []
    return get_encoding().encode(text, disallowed_special=())


def count_tokens(text: str) -> int:
    """Count tokens in *text*; blank input counts as zero."""

    return len(tokenize(text))


def decode_tokens(tokens: List[int]) -> str:
    return get_encoding().decode(tokens)
