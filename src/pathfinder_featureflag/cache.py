"""CacheClient 抽象基底クラスとインメモリ実装"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod

from .models import SubjectType


class CacheClient(ABC):
    """キャッシュクライアント抽象基底クラス。"""

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """キーに対応する値を取得する。存在しなければ None。"""
        ...

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: float | None = None) -> None:
        """キーと値を保存する。ttl 指定時は有効期限付き（秒）。"""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """キーを削除する。削除できたら True。"""
        ...


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: bytes, ttl: float | None) -> None:
        self.value = value
        self.expires_at: float | None = (
            time.monotonic() + ttl if ttl is not None else None
        )

    def is_expired(self) -> bool:
        return self.expires_at is not None and time.monotonic() >= self.expires_at


class InMemoryCacheClient(CacheClient):
    """テスト・開発用インメモリキャッシュクライアント。"""

    def __init__(self) -> None:
        self._store: dict[str, _CacheEntry] = {}

    async def get(self, key: str) -> bytes | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            del self._store[key]
            return None
        return entry.value

    async def set(self, key: str, value: bytes, ttl: float | None = None) -> None:
        self._store[key] = _CacheEntry(value, ttl)

    async def delete(self, key: str) -> bool:
        if key in self._store:
            del self._store[key]
            return True
        return False

    def keys(self) -> list[str]:
        """有効期限内のキー一覧を返す。"""
        return [key for key, entry in self._store.items() if not entry.is_expired()]


def definition_key(flag_key: str) -> str:
    return f"flag:definition:{flag_key}"


def override_key(flag_key: str, subject_type: SubjectType, subject_id: str) -> str:
    return f"flag:override:{flag_key}:{subject_type.value}:{subject_id}"
