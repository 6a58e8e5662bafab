"""フラグ値の型変換

ストアではフラグ値はすべて文字列で保持される。定義の読み込み時に
``FlagType`` に従って一度だけ Python の値へ変換する。
"""

from __future__ import annotations

import json
import math
from enum import Enum
from typing import Any

from .exceptions import FeatureFlagError, FeatureFlagErrorCodes


class FlagType(str, Enum):
    """フラグ値の型。"""

    BOOLEAN = "boolean"
    NUMERIC = "numeric"
    STRING = "string"
    JSON = "json"


def coerce_value(raw: Any, flag_type: FlagType) -> Any:
    """文字列表現のフラグ値を型に従って変換する。

    Args:
        raw: ストア上の値（通常は文字列）
        flag_type: フラグの型

    Returns:
        変換後の値

    Raises:
        FeatureFlagError: numeric / json の解析に失敗した場合 (CONFIG_ERROR)
    """
    if flag_type is FlagType.BOOLEAN:
        if isinstance(raw, bool):
            return raw
        return raw == "true"
    if flag_type is FlagType.NUMERIC:
        if isinstance(raw, bool):
            raise FeatureFlagError(
                FeatureFlagErrorCodes.CONFIG_ERROR,
                f"Invalid numeric flag value: {raw!r}",
            )
        try:
            number = float(raw)
        except (TypeError, ValueError) as e:
            raise FeatureFlagError(
                FeatureFlagErrorCodes.CONFIG_ERROR,
                f"Invalid numeric flag value: {raw!r}",
                cause=e,
            ) from e
        if not math.isfinite(number):
            raise FeatureFlagError(
                FeatureFlagErrorCodes.CONFIG_ERROR,
                f"Non-finite numeric flag value: {raw!r}",
            )
        return number
    if flag_type is FlagType.STRING:
        return "" if raw is None else str(raw)
    # FlagType.JSON
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except ValueError as e:
        raise FeatureFlagError(
            FeatureFlagErrorCodes.CONFIG_ERROR,
            f"Invalid JSON flag value: {raw!r}",
            cause=e,
        ) from e


def serialize_value(value: Any, flag_type: FlagType) -> str:
    """変換済みの値をストア用の文字列表現に戻す。"""
    if flag_type is FlagType.BOOLEAN:
        return "true" if value is True else "false"
    if flag_type is FlagType.NUMERIC:
        return repr(float(value))
    if flag_type is FlagType.STRING:
        return str(value)
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def typed_falsy(flag_type: FlagType | None) -> Any:
    """型ごとの偽値を返す。型が不明な場合は False。"""
    if flag_type is FlagType.NUMERIC:
        return 0.0
    if flag_type is FlagType.STRING:
        return ""
    if flag_type is FlagType.JSON:
        return None
    return False
