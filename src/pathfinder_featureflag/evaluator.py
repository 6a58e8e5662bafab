"""FlagEvaluator 実装

評価は以下の順でゲートを適用し、最初に該当したゲートが結果を決める。

1. 定義の取得（存在しない・無効なら flag_disabled）
2. 有効期間（not_started / expired）
3. 前提フラグ（prerequisites_not_met）
4. ターゲティングルール（targeting）
5. ユーザー・グループのオーバーライド（override）
6. 段階的ロールアウト（rollout_excluded）
7. デフォルト値（default）

設定やストア・キャッシュの異常は例外にせず fail closed の結果に変換する。
例外になるのは呼び出し側の誤り（空のフラグキーなど）のみ。
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

import structlog

from .bucketing import ANONYMOUS_IDENTIFIER, is_in_rollout, rollout_identifier
from .cache import CacheClient, definition_key, override_key
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .metrics import (
    flag_cache_lookups_total,
    flag_evaluation_duration_seconds,
    flag_evaluations_total,
)
from .models import (
    EvaluationContext,
    EvaluationReason,
    EvaluationResult,
    FlagDefinition,
    SubjectType,
)
from .settings import FeatureFlagSettings
from .store import ConfigurationStore
from .targeting import first_match
from .values import coerce_value, typed_falsy

logger = structlog.get_logger(__name__)

T = TypeVar("T")

_NO_OVERRIDE = object()

# 前提フラグの評価結果からそのまま伝播させるエラーコード
_CHAIN_ERRORS = (
    FeatureFlagErrorCodes.CIRCULAR_DEPENDENCY,
    FeatureFlagErrorCodes.PREREQUISITE_DEPTH_EXCEEDED,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def validate_flag_key(flag_key: Any) -> None:
    """フラグキーが空でない文字列であることを確認する。

    Raises:
        FeatureFlagError: キーが不正な場合 (INVALID_FLAG_KEY)
    """
    if not isinstance(flag_key, str) or not flag_key.strip():
        raise FeatureFlagError(
            FeatureFlagErrorCodes.INVALID_FLAG_KEY,
            f"Flag key must be a non-empty string: {flag_key!r}",
        )


def _validate_context(context: Any) -> None:
    if not isinstance(context, EvaluationContext):
        raise FeatureFlagError(
            FeatureFlagErrorCodes.INVALID_CONTEXT,
            f"Expected EvaluationContext, got {type(context).__name__}",
        )
    for name in ("user_id", "group_id", "session_id", "ip_address"):
        value = getattr(context, name)
        if value is not None and not isinstance(value, str):
            raise FeatureFlagError(
                FeatureFlagErrorCodes.INVALID_CONTEXT,
                f"EvaluationContext.{name} must be a string or None",
            )
    if not isinstance(context.attributes, dict):
        raise FeatureFlagError(
            FeatureFlagErrorCodes.INVALID_CONTEXT,
            "EvaluationContext.attributes must be a dict",
        )


class FlagEvaluator:
    """フィーチャーフラグ評価器。

    ストアからフラグ定義とオーバーライドを読み、キャッシュがあれば
    read-through で利用する。キャッシュの無効化は管理操作側の責務。
    """

    def __init__(
        self,
        store: ConfigurationStore,
        cache: CacheClient | None = None,
        *,
        cache_ttl: float = 300.0,
        max_prerequisite_depth: int = 10,
        slow_evaluation_threshold_ms: float = 5.0,
        anonymous_identifier: str = ANONYMOUS_IDENTIFIER,
        lookup_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._cache = cache
        self._cache_ttl = cache_ttl
        self._max_depth = max_prerequisite_depth
        self._slow_threshold_ms = slow_evaluation_threshold_ms
        self._anonymous_identifier = anonymous_identifier
        self._lookup_timeout = lookup_timeout
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        settings: FeatureFlagSettings,
        store: ConfigurationStore,
        cache: CacheClient | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> FlagEvaluator:
        """設定から評価器を構築する。"""
        section = settings.evaluator
        return cls(
            store,
            cache,
            cache_ttl=section.cache_ttl_seconds,
            max_prerequisite_depth=section.max_prerequisite_depth,
            slow_evaluation_threshold_ms=section.slow_evaluation_threshold_ms,
            anonymous_identifier=section.anonymous_identifier,
            lookup_timeout=section.lookup_timeout_seconds,
            clock=clock,
        )

    async def evaluate(
        self, flag_key: str, context: EvaluationContext
    ) -> EvaluationResult:
        """フラグを評価する。

        Raises:
            FeatureFlagError: フラグキーまたはコンテキストが不正な場合
        """
        validate_flag_key(flag_key)
        _validate_context(context)
        return await self._evaluate_top_level(flag_key, context)

    async def evaluate_batch(
        self, flag_keys: Sequence[str], context: EvaluationContext
    ) -> dict[str, EvaluationResult]:
        """複数フラグを同じコンテキストで並行評価する。"""
        if isinstance(flag_keys, str) or not isinstance(flag_keys, (list, tuple)):
            raise FeatureFlagError(
                FeatureFlagErrorCodes.INVALID_FLAG_KEY,
                "flag_keys must be a list of flag keys",
            )
        for flag_key in flag_keys:
            validate_flag_key(flag_key)
        _validate_context(context)
        unique_keys = list(dict.fromkeys(flag_keys))
        results = await asyncio.gather(
            *(self._evaluate_top_level(key, context) for key in unique_keys)
        )
        return dict(zip(unique_keys, results))

    async def is_enabled(self, flag_key: str, context: EvaluationContext) -> bool:
        result = await self.evaluate(flag_key, context)
        return result.enabled

    async def _evaluate_top_level(
        self, flag_key: str, context: EvaluationContext
    ) -> EvaluationResult:
        started = time.perf_counter()
        # 前提フラグの評価も含めて同一時刻で判定する
        result = await self._evaluate(flag_key, context, self._clock(), ())
        elapsed = time.perf_counter() - started

        flag_evaluations_total.add(
            1, {"flag_key": flag_key, "reason": result.reason.value}
        )
        flag_evaluation_duration_seconds.record(elapsed, {"flag_key": flag_key})
        elapsed_ms = elapsed * 1000
        if elapsed_ms > self._slow_threshold_ms:
            logger.warning(
                "Slow flag evaluation",
                flag_key=flag_key,
                elapsed_ms=round(elapsed_ms, 2),
            )
        return result

    async def _evaluate(
        self,
        flag_key: str,
        context: EvaluationContext,
        now: datetime,
        chain: tuple[str, ...],
    ) -> EvaluationResult:
        try:
            definition = await self._load_definition(flag_key)
        except FeatureFlagError as e:
            logger.warning(
                "Flag lookup failed, treating flag as disabled",
                flag_key=flag_key,
                error_code=e.code,
                error=str(e),
            )
            return EvaluationResult(
                flag_key, False, EvaluationReason.FLAG_DISABLED, e.code
            )

        if definition is None:
            return EvaluationResult(flag_key, False, EvaluationReason.FLAG_DISABLED)
        falsy = typed_falsy(definition.type)
        if not definition.enabled:
            return EvaluationResult(flag_key, falsy, EvaluationReason.FLAG_DISABLED)

        if definition.start_date is not None and now < definition.start_date:
            return EvaluationResult(flag_key, falsy, EvaluationReason.NOT_STARTED)
        if definition.end_date is not None and now >= definition.end_date:
            return EvaluationResult(flag_key, falsy, EvaluationReason.EXPIRED)

        if definition.prerequisites:
            blocked = await self._check_prerequisites(definition, context, now, chain)
            if blocked is not None:
                return blocked

        rule = first_match(definition.targeting_rules, context)
        if rule is not None:
            return EvaluationResult(
                flag_key, rule.result_value, EvaluationReason.TARGETING
            )

        try:
            override = await self._find_override(definition, context)
        except FeatureFlagError as e:
            logger.warning(
                "Override lookup failed, treating flag as disabled",
                flag_key=flag_key,
                error_code=e.code,
                error=str(e),
            )
            return EvaluationResult(
                flag_key, falsy, EvaluationReason.FLAG_DISABLED, e.code
            )
        if override is not _NO_OVERRIDE:
            return EvaluationResult(flag_key, override, EvaluationReason.OVERRIDE)

        if definition.rollout_percentage < 100:
            identifier = rollout_identifier(context, self._anonymous_identifier)
            if not is_in_rollout(flag_key, identifier, definition.rollout_percentage):
                return EvaluationResult(
                    flag_key, falsy, EvaluationReason.ROLLOUT_EXCLUDED
                )

        return EvaluationResult(
            flag_key, definition.default_value, EvaluationReason.DEFAULT
        )

    async def _check_prerequisites(
        self,
        definition: FlagDefinition,
        context: EvaluationContext,
        now: datetime,
        chain: tuple[str, ...],
    ) -> EvaluationResult | None:
        """前提フラグを順に評価し、満たされなければ結果を返す。"""
        chain = chain + (definition.key,)
        falsy = typed_falsy(definition.type)

        if len(chain) > self._max_depth:
            logger.error(
                "Prerequisite chain too deep",
                flag_key=definition.key,
                chain=list(chain),
                max_depth=self._max_depth,
            )
            return EvaluationResult(
                definition.key,
                falsy,
                EvaluationReason.PREREQUISITES_NOT_MET,
                FeatureFlagErrorCodes.PREREQUISITE_DEPTH_EXCEEDED,
            )

        for prerequisite in definition.prerequisites:
            if prerequisite in chain:
                logger.error(
                    "Circular prerequisite detected",
                    flag_key=definition.key,
                    prerequisite=prerequisite,
                    chain=list(chain),
                )
                return EvaluationResult(
                    definition.key,
                    falsy,
                    EvaluationReason.PREREQUISITES_NOT_MET,
                    FeatureFlagErrorCodes.CIRCULAR_DEPENDENCY,
                )
            result = await self._evaluate(prerequisite, context, now, chain)
            if result.error_code in _CHAIN_ERRORS or not result.value:
                return EvaluationResult(
                    definition.key,
                    falsy,
                    EvaluationReason.PREREQUISITES_NOT_MET,
                    result.error_code,
                )
        return None

    async def _find_override(
        self, definition: FlagDefinition, context: EvaluationContext
    ) -> Any:
        """ユーザー、グループの順にオーバーライドを探す。"""
        subjects = (
            (SubjectType.USER, context.user_id),
            (SubjectType.GROUP, context.group_id),
        )
        for subject_type, subject_id in subjects:
            if not subject_id:
                continue
            raw = await self._load_override(definition.key, subject_type, subject_id)
            if raw is not None:
                return coerce_value(raw, definition.type)
        return _NO_OVERRIDE

    async def _load_definition(self, flag_key: str) -> FlagDefinition | None:
        cache_key = definition_key(flag_key)
        record = await self._cache_get_json(cache_key)
        if record is not None:
            try:
                return FlagDefinition.from_record(record)
            except FeatureFlagError as e:
                logger.warning(
                    "Ignoring invalid cached flag definition",
                    flag_key=flag_key,
                    error=str(e),
                )

        definition = await self._store_call(
            lambda: self._store.get_flag_definition(flag_key)
        )
        if definition is not None:
            await self._cache_set_json(cache_key, definition.to_record())
        return definition

    async def _load_override(
        self, flag_key: str, subject_type: SubjectType, subject_id: str
    ) -> str | None:
        cache_key = override_key(flag_key, subject_type, subject_id)
        entry = await self._cache_get_json(cache_key)
        if entry is not None:
            value = entry.get("value")
            if value is None or isinstance(value, str):
                return value

        value = await self._store_call(
            lambda: self._store.get_override(flag_key, subject_type, subject_id)
        )
        # 存在しないオーバーライドも空エントリとしてキャッシュする
        await self._cache_set_json(cache_key, {"value": value})
        return value

    async def _with_timeout(self, call: Callable[[], Awaitable[T]]) -> T:
        if self._lookup_timeout is None:
            return await call()
        return await asyncio.wait_for(call(), timeout=self._lookup_timeout)

    async def _store_call(self, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await self._with_timeout(call)
        except FeatureFlagError:
            raise
        except Exception as e:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.STORE_ERROR,
                f"Configuration store lookup failed: {e}",
                cause=e,
            ) from e

    async def _cache_get_json(self, key: str) -> dict[str, Any] | None:
        if self._cache is None:
            return None
        cache = self._cache
        try:
            raw = await self._with_timeout(lambda: cache.get(key))
        except Exception as e:
            flag_cache_lookups_total.add(1, {"result": "error"})
            logger.warning("Cache read failed, falling back to store", key=key, error=str(e))
            return None
        if raw is None:
            flag_cache_lookups_total.add(1, {"result": "miss"})
            return None
        try:
            data = json.loads(raw)
        except ValueError as e:
            flag_cache_lookups_total.add(1, {"result": "error"})
            logger.warning("Ignoring undecodable cache entry", key=key, error=str(e))
            return None
        if not isinstance(data, dict):
            flag_cache_lookups_total.add(1, {"result": "error"})
            logger.warning("Ignoring malformed cache entry", key=key)
            return None
        flag_cache_lookups_total.add(1, {"result": "hit"})
        return data

    async def _cache_set_json(self, key: str, payload: dict[str, Any]) -> None:
        if self._cache is None:
            return
        cache = self._cache
        try:
            raw = json.dumps(payload, default=str).encode("utf-8")
            await self._with_timeout(lambda: cache.set(key, raw, self._cache_ttl))
        except Exception as e:
            logger.warning("Cache write failed", key=key, error=str(e))
