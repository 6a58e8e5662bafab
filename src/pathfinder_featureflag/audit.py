"""フラグ管理操作の監査ログ"""

from __future__ import annotations

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


@dataclass
class AuditEvent:
    """監査イベント。"""

    actor_id: str
    action: str
    flag_key: str
    reason: str = ""
    severity: str = "info"
    details: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )


class AuditClient(ABC):
    """追記専用の監査ログクライアント抽象基底クラス。"""

    @abstractmethod
    async def record(self, event: AuditEvent) -> None:
        """イベントを記録する。"""
        ...

    @abstractmethod
    async def events_for(self, flag_key: str) -> list[AuditEvent]:
        """フラグに関するイベントを記録順で返す。"""
        ...


class InMemoryAuditClient(AuditClient):
    """テスト・開発用インメモリ監査ログクライアント。"""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []

    async def record(self, event: AuditEvent) -> None:
        self._events.append(event)

    async def events_for(self, flag_key: str) -> list[AuditEvent]:
        return [e for e in self._events if e.flag_key == flag_key]

    @property
    def events(self) -> list[AuditEvent]:
        """記録済みイベントのコピー。"""
        return list(self._events)
