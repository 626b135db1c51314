"""Key-value store protocol — persistent string lookups such as image URLs."""
from typing import Protocol


class KeyValueStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...
