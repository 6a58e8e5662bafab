"""FlagAdministrator 実装

フラグ定義・オーバーライドの更新経路。ストアへの書き込み、評価器が読む
キャッシュエントリの無効化、監査ログへの記録を行う。評価と異なり
管理操作の失敗は FeatureFlagError として呼び出し元に送出する。
"""

from __future__ import annotations

import dataclasses
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from .audit import AuditClient, AuditEvent
from .cache import CacheClient, definition_key, override_key
from .evaluator import validate_flag_key
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .models import FlagDefinition, Override, SubjectType
from .store import ConfigurationStore
from .values import FlagType, coerce_value, serialize_value

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _subject_type(value: SubjectType | str) -> SubjectType:
    try:
        return SubjectType(value)
    except ValueError as e:
        raise FeatureFlagError(
            FeatureFlagErrorCodes.VALIDATION,
            f"Unknown override subject type: {value!r}",
            cause=e,
        ) from e


def _normalize_override_value(raw: Any, flag_type: FlagType) -> str:
    """オーバーライド値をフラグの型で検証し、ストア用の文字列に正規化する。"""
    if flag_type is FlagType.BOOLEAN and not (
        isinstance(raw, bool) or raw in ("true", "false")
    ):
        raise FeatureFlagError(
            FeatureFlagErrorCodes.CONFIG_ERROR,
            f"Invalid boolean override value: {raw!r}",
        )
    return serialize_value(coerce_value(raw, flag_type), flag_type)


class FlagAdministrator:
    """フラグ管理操作。"""

    def __init__(
        self,
        store: ConfigurationStore,
        audit: AuditClient,
        cache: CacheClient | None = None,
    ) -> None:
        self._store = store
        self._audit = audit
        self._cache = cache

    async def get_flag(self, flag_key: str) -> FlagDefinition | None:
        validate_flag_key(flag_key)
        return await self._store_call(lambda: self._store.get_flag_definition(flag_key))

    async def save_flag(
        self, definition: FlagDefinition, actor_id: str, reason: str = ""
    ) -> FlagDefinition:
        """フラグ定義を作成または更新する。"""
        validate_flag_key(definition.key)
        old = await self.get_flag(definition.key)
        await self._store_call(lambda: self._store.save_flag_definition(definition))
        await self.invalidate(definition.key)
        await self._audit.record(
            AuditEvent(
                actor_id=actor_id,
                action="flag_created" if old is None else "flag_updated",
                flag_key=definition.key,
                reason=reason,
                details={
                    "old": None if old is None else old.to_record(),
                    "new": definition.to_record(),
                },
            )
        )
        logger.info(
            "Feature flag saved",
            flag_key=definition.key,
            actor_id=actor_id,
            created=old is None,
        )
        return definition

    async def set_enabled(
        self, flag_key: str, enabled: bool, actor_id: str, reason: str = ""
    ) -> FlagDefinition:
        """フラグのマスタースイッチを切り替える。"""
        current = await self._require_flag(flag_key)
        updated = dataclasses.replace(current, enabled=enabled)
        await self._store_call(lambda: self._store.save_flag_definition(updated))
        await self.invalidate(flag_key)
        await self._audit.record(
            AuditEvent(
                actor_id=actor_id,
                action="flag_enabled" if enabled else "flag_disabled",
                flag_key=flag_key,
                reason=reason,
                details={"old_enabled": current.enabled, "new_enabled": enabled},
            )
        )
        return updated

    async def emergency_disable(
        self, flag_key: str, actor_id: str, reason: str
    ) -> FlagDefinition:
        """緊急停止スイッチ。フラグを即座に無効化する。"""
        current = await self._require_flag(flag_key)
        updated = dataclasses.replace(current, enabled=False)
        await self._store_call(lambda: self._store.save_flag_definition(updated))
        await self.invalidate(flag_key)
        await self._audit.record(
            AuditEvent(
                actor_id=actor_id,
                action="emergency_disable",
                flag_key=flag_key,
                reason=f"EMERGENCY: {reason}",
                severity="critical",
                details={"old_enabled": current.enabled},
            )
        )
        logger.error(
            "Feature flag emergency disabled",
            flag_key=flag_key,
            actor_id=actor_id,
            reason=reason,
        )
        return updated

    async def delete_flag(self, flag_key: str, actor_id: str, reason: str = "") -> None:
        """フラグ定義とそのオーバーライドを削除する。

        Raises:
            FeatureFlagError: フラグが存在しない場合 (FLAG_NOT_FOUND)
        """
        current = await self._require_flag(flag_key)
        removed = await self._store_call(
            lambda: self._store.delete_flag_definition(flag_key)
        )
        if not removed:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.FLAG_NOT_FOUND,
                f"Flag not found: {flag_key}",
            )
        await self.invalidate(flag_key)
        await self._audit.record(
            AuditEvent(
                actor_id=actor_id,
                action="flag_deleted",
                flag_key=flag_key,
                reason=reason,
                details={"old": current.to_record()},
            )
        )
        logger.info("Feature flag deleted", flag_key=flag_key, actor_id=actor_id)

    async def set_override(
        self,
        flag_key: str,
        subject_type: SubjectType | str,
        subject_id: str,
        value: Any,
        actor_id: str,
        reason: str = "",
    ) -> Override:
        """ユーザーまたはグループのオーバーライドを設定する。"""
        subject = _subject_type(subject_type)
        if not isinstance(subject_id, str) or not subject_id:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.VALIDATION,
                "Override subject_id must be a non-empty string",
            )
        definition = await self._require_flag(flag_key)
        override = Override(
            flag_key=flag_key,
            subject_type=subject,
            subject_id=subject_id,
            value=_normalize_override_value(value, definition.type),
        )
        await self._store_call(lambda: self._store.save_override(override))
        await self._cache_delete(override_key(flag_key, subject, subject_id))
        await self._audit.record(
            AuditEvent(
                actor_id=actor_id,
                action="override_set",
                flag_key=flag_key,
                reason=reason,
                details={
                    "subject_type": subject.value,
                    "subject_id": subject_id,
                    "value": override.value,
                },
            )
        )
        return override

    async def remove_override(
        self,
        flag_key: str,
        subject_type: SubjectType | str,
        subject_id: str,
        actor_id: str,
        reason: str = "",
    ) -> bool:
        """オーバーライドを削除する。削除できたら True。"""
        validate_flag_key(flag_key)
        subject = _subject_type(subject_type)
        removed = await self._store_call(
            lambda: self._store.delete_override(flag_key, subject, subject_id)
        )
        await self._cache_delete(override_key(flag_key, subject, subject_id))
        if removed:
            await self._audit.record(
                AuditEvent(
                    actor_id=actor_id,
                    action="override_removed",
                    flag_key=flag_key,
                    reason=reason,
                    details={"subject_type": subject.value, "subject_id": subject_id},
                )
            )
        return removed

    async def history(self, flag_key: str) -> list[AuditEvent]:
        """フラグの変更履歴（古い順）。"""
        events = await self._audit.events_for(flag_key)
        return sorted(events, key=lambda e: e.timestamp)

    async def invalidate(self, flag_key: str) -> None:
        """フラグ定義のキャッシュエントリを削除する。"""
        await self._cache_delete(definition_key(flag_key))

    async def _require_flag(self, flag_key: str) -> FlagDefinition:
        definition = await self.get_flag(flag_key)
        if definition is None:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.FLAG_NOT_FOUND,
                f"Flag not found: {flag_key}",
            )
        return definition

    async def _store_call(self, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except FeatureFlagError:
            raise
        except Exception as e:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.STORE_ERROR,
                f"Configuration store operation failed: {e}",
                cause=e,
            ) from e

    async def _cache_delete(self, key: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.delete(key)
        except Exception as e:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.CACHE_ERROR,
                f"Failed to invalidate cache entry {key}: {e}",
                cause=e,
            ) from e
