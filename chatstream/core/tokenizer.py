"""Token counting for committed answer text (tiktoken)."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

import tiktoken

logger = logging.getLogger(__name__)

TokenCounter = Callable[[str], int]


class Tokenizer:
    """Callable text -> token count. The encoding is loaded on first use."""

    def __init__(self, model: str = "gpt-4") -> None:
        self.model = model
        self._encoding: Optional[tiktoken.Encoding] = None
        self._lock = threading.Lock()

    def _get_encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            with self._lock:
                if self._encoding is None:
                    self._encoding = tiktoken.encoding_for_model(self.model)
                    logger.debug("tokenizer loaded", extra={"model": self.model})
        return self._encoding

    def __call__(self, text: str) -> int:
        if not text:
            return 0
        return len(self._get_encoding().encode(text, disallowed_special=()))
