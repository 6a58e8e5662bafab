"""設定型定義（pydantic BaseModel）"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from .bucketing import ANONYMOUS_IDENTIFIER


class EvaluatorSection(BaseModel):
    """評価器設定。"""

    cache_ttl_seconds: float = Field(default=300.0, gt=0)
    max_prerequisite_depth: int = Field(default=10, ge=1)
    slow_evaluation_threshold_ms: float = Field(default=5.0, ge=0)
    anonymous_identifier: str = Field(default=ANONYMOUS_IDENTIFIER, min_length=1)
    # ストア・キャッシュ呼び出しのタイムアウト（秒）。None なら無制限
    lookup_timeout_seconds: float | None = Field(default=None, gt=0)


class LogSection(BaseModel):
    """ログ設定。"""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    format: Literal["json", "text"] = "json"


class FeatureFlagSettings(BaseModel):
    """featureflag ライブラリ設定全体。"""

    evaluator: EvaluatorSection = Field(default_factory=EvaluatorSection)
    log: LogSection = Field(default_factory=LogSection)
