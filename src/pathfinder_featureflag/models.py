"""featureflag データモデル"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any

from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .values import FlagType, coerce_value, serialize_value


class EvaluationReason(str, Enum):
    """評価結果の理由コード。"""

    FLAG_DISABLED = "flag_disabled"
    NOT_STARTED = "not_started"
    EXPIRED = "expired"
    PREREQUISITES_NOT_MET = "prerequisites_not_met"
    TARGETING = "targeting"
    OVERRIDE = "override"
    ROLLOUT_EXCLUDED = "rollout_excluded"
    DEFAULT = "default"


class SubjectType(str, Enum):
    """オーバーライドの対象種別。"""

    USER = "user"
    GROUP = "group"


def _config_error(message: str, cause: Exception | None = None) -> FeatureFlagError:
    return FeatureFlagError(FeatureFlagErrorCodes.CONFIG_ERROR, message, cause=cause)


def _parse_bool(raw: Any, field_name: str) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw in ("Y", "y", "true", "1", 1):
        return True
    if raw in ("N", "n", "false", "0", 0):
        return False
    raise _config_error(f"Invalid {field_name}: {raw!r}")


def _parse_datetime(raw: Any, field_name: str) -> datetime | None:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        value = raw
    elif isinstance(raw, date):
        value = datetime(raw.year, raw.month, raw.day)
    else:
        text = str(raw)
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError as e:
            raise _config_error(f"Invalid {field_name}: {raw!r}", cause=e) from e
    # タイムゾーンなしは UTC とみなす
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


def _parse_list(raw: Any, field_name: str) -> list[Any]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise _config_error(f"Invalid {field_name}: {raw!r}", cause=e) from e
    if not isinstance(raw, list):
        raise _config_error(f"{field_name} must be a list")
    return raw


def _parse_percentage(raw: Any) -> float:
    if raw is None or raw == "":
        return 100.0
    if isinstance(raw, bool):
        raise _config_error(f"Invalid rollout_percentage: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as e:
        raise _config_error(f"Invalid rollout_percentage: {raw!r}", cause=e) from e
    if not 0.0 <= value <= 100.0:
        raise _config_error(f"rollout_percentage out of range: {value}")
    return value


@dataclass(frozen=True)
class TargetingRule:
    """ターゲティングルール。

    ``attribute`` に対する ``operator`` 判定が真になれば、フラグは
    ``result_value`` を返す。
    """

    attribute: str
    operator: str
    value: Any = None
    result: str | None = None
    result_value: Any = True

    @classmethod
    def from_dict(
        cls, payload: Mapping[str, Any], flag_type: FlagType, default_value: Any
    ) -> TargetingRule:
        """ストアのレコードからルールを構築する。"""
        if not isinstance(payload, Mapping):
            raise _config_error("Targeting rule must be a mapping")
        attribute = payload.get("attribute", payload.get("field"))
        operator = payload.get("operator")
        if not attribute or not operator:
            raise _config_error("Targeting rule requires attribute and operator")
        raw_result = payload.get("result")
        if raw_result is None:
            result_value = True if flag_type is FlagType.BOOLEAN else default_value
        else:
            result_value = coerce_value(raw_result, flag_type)
        return cls(
            attribute=str(attribute),
            operator=str(operator),
            value=payload.get("value"),
            result=None if raw_result is None else serialize_value(result_value, flag_type),
            result_value=result_value,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "attribute": self.attribute,
            "operator": self.operator,
            "value": self.value,
        }
        if self.result is not None:
            data["result"] = self.result
        return data


@dataclass(frozen=True)
class FlagDefinition:
    """フィーチャーフラグ定義。値は読み込み時に型変換済み。"""

    key: str
    type: FlagType = FlagType.BOOLEAN
    default_value: Any = False
    enabled: bool = True
    start_date: datetime | None = None
    end_date: datetime | None = None
    prerequisites: tuple[str, ...] = ()
    targeting_rules: tuple[TargetingRule, ...] = ()
    rollout_percentage: float = 100.0
    name: str = ""
    description: str = ""
    category: str = ""
    is_system_wide: bool = False

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> FlagDefinition:
        """文字列ベースのストアレコードから定義を構築する。

        Raises:
            FeatureFlagError: レコードの形式が不正な場合 (CONFIG_ERROR)
        """
        key = record.get("key", record.get("flag_key"))
        if not isinstance(key, str) or not key:
            raise _config_error("Flag record requires a non-empty key")
        raw_type = record.get("type", record.get("flag_type", FlagType.BOOLEAN.value))
        try:
            flag_type = FlagType(raw_type)
        except (TypeError, ValueError) as e:
            raise _config_error(f"Unknown flag type for {key}: {raw_type!r}", cause=e) from e

        raw_default = record.get("default_value")
        if raw_default is None:
            if flag_type is FlagType.BOOLEAN:
                default_value: Any = False
            elif flag_type is FlagType.JSON:
                default_value = None
            else:
                raise _config_error(f"Flag {key} requires a default_value")
        else:
            default_value = coerce_value(raw_default, flag_type)

        prerequisites = _parse_list(record.get("prerequisites"), "prerequisites")
        if not all(isinstance(p, str) and p for p in prerequisites):
            raise _config_error(f"Prerequisites of {key} must be flag keys")
        rules = _parse_list(record.get("targeting_rules"), "targeting_rules")

        return cls(
            key=key,
            type=flag_type,
            default_value=default_value,
            enabled=_parse_bool(record.get("enabled", True), "enabled"),
            start_date=_parse_datetime(record.get("start_date"), "start_date"),
            end_date=_parse_datetime(record.get("end_date"), "end_date"),
            prerequisites=tuple(prerequisites),
            targeting_rules=tuple(
                TargetingRule.from_dict(rule, flag_type, default_value) for rule in rules
            ),
            rollout_percentage=_parse_percentage(record.get("rollout_percentage")),
            name=str(record.get("name", record.get("flag_name")) or ""),
            description=str(record.get("description") or ""),
            category=str(record.get("category") or ""),
            is_system_wide=_parse_bool(record.get("is_system_wide", False), "is_system_wide"),
        )

    def to_record(self) -> dict[str, Any]:
        """ストア・キャッシュ用のレコード表現を返す。"""
        return {
            "key": self.key,
            "type": self.type.value,
            "default_value": serialize_value(self.default_value, self.type),
            "enabled": self.enabled,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "prerequisites": list(self.prerequisites),
            "targeting_rules": [rule.to_dict() for rule in self.targeting_rules],
            "rollout_percentage": self.rollout_percentage,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "is_system_wide": self.is_system_wide,
        }


@dataclass(frozen=True)
class Override:
    """ユーザーまたはグループ単位のフラグ値オーバーライド。"""

    flag_key: str
    subject_type: SubjectType
    subject_id: str
    value: str


@dataclass
class EvaluationContext:
    """フラグ評価コンテキスト。"""

    user_id: str | None = None
    group_id: str | None = None
    session_id: str | None = None
    ip_address: str | None = None
    attributes: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class EvaluationResult:
    """フラグ評価結果。

    ``error_code`` は fail closed で返された結果のみ設定される。
    """

    flag_key: str
    value: Any
    reason: EvaluationReason
    error_code: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.value)
