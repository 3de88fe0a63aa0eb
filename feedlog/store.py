"""
Key-value store abstraction for Redis and in-memory testing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

import redis
from redis import exceptions as redis_exceptions

from feedlog.errors import StoreFailure


class KeyValueStore(Protocol):
    """Defines the operations the API needs from the durable map."""

    def list_keys(self) -> list[str]:
        ...

    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class InMemoryKeyValueStore:
    """Test double for key-value interactions."""

    items: dict[str, str] = field(default_factory=dict)

    def list_keys(self) -> list[str]:
        return list(self.items.keys())

    def get(self, key: str) -> Optional[str]:
        return self.items.get(key)

    def put(self, key: str, value: str) -> None:
        self.items[key] = value

    def delete(self, key: str) -> None:
        self.items.pop(key, None)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.items.clear()


@dataclass
class RedisKeyValueStore:
    """
    Redis-backed store. Keys are namespaced under ``key_prefix`` so the
    database can be shared with other applications.
    """

    url: str
    key_prefix: str = "feedlog:"

    def __post_init__(self):
        self.client = redis.Redis.from_url(self.url, decode_responses=True)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    def list_keys(self) -> list[str]:
        try:
            raw_keys = self.client.scan_iter(match=f"{self.key_prefix}*")
            return [key[len(self.key_prefix):] for key in raw_keys]
        except redis_exceptions.RedisError as exc:
            raise StoreFailure(f"Failed to list keys: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        try:
            return self.client.get(self._key(key))
        except redis_exceptions.RedisError as exc:
            raise StoreFailure(f"Failed to read {key}: {exc}") from exc

    def put(self, key: str, value: str) -> None:
        try:
            self.client.set(self._key(key), value)
        except redis_exceptions.RedisError as exc:
            raise StoreFailure(f"Failed to write {key}: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._key(key))
        except redis_exceptions.RedisError as exc:
            raise StoreFailure(f"Failed to delete {key}: {exc}") from exc
