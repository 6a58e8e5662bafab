"""設定ファイル・フラグファイルの読み込み"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .models import FlagDefinition
from .settings import FeatureFlagSettings


def _read_yaml(path: Path) -> dict[str, Any]:
    """YAML ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.READ_FILE,
            message=f"Failed to read file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.safe_load(text) or {}
    except yaml.YAMLError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.PARSE_YAML,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.PARSE_YAML,
            message=f"Top-level YAML value must be a mapping: {path}",
        )
    return data


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(base_path: Path, env_path: Path | None = None) -> FeatureFlagSettings:
    """設定ファイルを読み込んで FeatureFlagSettings を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = _read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, _read_yaml(env_path))
    try:
        return FeatureFlagSettings.model_validate(data)
    except ValidationError as e:
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.VALIDATION,
            message=f"Settings validation failed: {e}",
            cause=e,
        ) from e


def load_flag_file(path: Path) -> list[FlagDefinition]:
    """``flags:`` リストを持つ YAML からフラグ定義を読み込む。

    Raises:
        FeatureFlagError: 読み込み・解析・レコード検証に失敗した場合
    """
    data = _read_yaml(path)
    records = data.get("flags") or []
    if not isinstance(records, list):
        raise FeatureFlagError(
            code=FeatureFlagErrorCodes.CONFIG_ERROR,
            message=f"'flags' must be a list: {path}",
        )
    definitions: list[FlagDefinition] = []
    seen: set[str] = set()
    for record in records:
        if not isinstance(record, dict):
            raise FeatureFlagError(
                code=FeatureFlagErrorCodes.CONFIG_ERROR,
                message=f"Flag record must be a mapping: {record!r}",
            )
        definition = FlagDefinition.from_record(record)
        if definition.key in seen:
            raise FeatureFlagError(
                code=FeatureFlagErrorCodes.CONFIG_ERROR,
                message=f"Duplicate flag key: {definition.key}",
            )
        seen.add(definition.key)
        definitions.append(definition)
    return definitions
