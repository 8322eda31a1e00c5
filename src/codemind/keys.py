"""Round-robin pool of user-supplied Gemini API keys."""

from __future__ import annotations

import re
import threading

import structlog

from codemind.errors import CodeMindError, ErrorCode

log = structlog.get_logger()

_LINE_SPLIT = re.compile(r"\r?\n")


def parse_key_file(text: str, min_length: int = 20) -> list[str]:
    """Extract keys from an uploaded key file: one per line, short lines dropped.

    The bound is inclusive: a key of exactly ``min_length`` characters is
    kept, unlike the strict ``> 20`` filter of the first web client.
    """
    keys = [line.strip() for line in _LINE_SPLIT.split(text)]
    return [key for key in keys if len(key) >= min_length]


class ApiKeyPool:
    """Fixed-size key list with a shared rotation cursor.

    The cursor is advanced under a lock so it always stays in
    ``[0, len(keys))``. Fairness between concurrent callers is not
    guaranteed.
    """

    def __init__(self, keys: list[str] | None = None) -> None:
        self._lock = threading.Lock()
        self._keys: tuple[str, ...] = tuple(keys or ())
        self._index = 0

    def __len__(self) -> int:
        return len(self._keys)

    @property
    def index(self) -> int:
        return self._index

    @property
    def keys(self) -> tuple[str, ...]:
        return self._keys

    def replace(self, keys: list[str]) -> None:
        """Swap in a new key list and reset the cursor."""
        with self._lock:
            self._keys = tuple(keys)
            self._index = 0
        log.info("api_key_pool_replaced", count=len(keys))

    def load_key_file(self, text: str, min_length: int = 20) -> int:
        keys = parse_key_file(text, min_length)
        if not keys:
            raise CodeMindError(ErrorCode.INVALID_INPUT, "No valid keys found in the file.")
        self.replace(keys)
        return len(keys)

    def next_key(self) -> str | None:
        """Draw the key under the cursor and advance it. ``None`` when empty."""
        with self._lock:
            if not self._keys:
                return None
            position = self._index
            key = self._keys[position]
            self._index = (position + 1) % len(self._keys)
        log.debug("api_key_drawn", index=position)
        return key
