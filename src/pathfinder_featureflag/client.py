"""FeatureFlagClient プロトコル"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from .models import EvaluationContext, EvaluationResult


class FeatureFlagClientProtocol(Protocol):
    """フィーチャーフラグクライアントプロトコル。"""

    async def evaluate(
        self, flag_key: str, context: EvaluationContext
    ) -> EvaluationResult: ...

    async def evaluate_batch(
        self, flag_keys: Sequence[str], context: EvaluationContext
    ) -> dict[str, EvaluationResult]: ...

    async def is_enabled(self, flag_key: str, context: EvaluationContext) -> bool: ...
