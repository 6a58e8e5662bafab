"""featureflag ライブラリの例外型定義"""

from __future__ import annotations


class FeatureFlagError(Exception):
    """featureflag ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FeatureFlagErrorCodes:
    """エラーコード定数。"""

    # 呼び出し側のエラー（例外として送出される）
    INVALID_FLAG_KEY: str = "INVALID_FLAG_KEY"
    INVALID_CONTEXT: str = "INVALID_CONTEXT"

    # 管理操作のエラー
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"

    # 設定・依存先のエラー（評価時は fail closed の結果に変換される）
    CONFIG_ERROR: str = "CONFIG_ERROR"
    CIRCULAR_DEPENDENCY: str = "CIRCULAR_DEPENDENCY"
    PREREQUISITE_DEPTH_EXCEEDED: str = "PREREQUISITE_DEPTH_EXCEEDED"
    STORE_ERROR: str = "STORE_ERROR"
    CACHE_ERROR: str = "CACHE_ERROR"

    # 設定ファイル読み込みのエラー
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
