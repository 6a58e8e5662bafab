"""段階的ロールアウトのバケット計算"""

from __future__ import annotations

import hashlib

from .models import EvaluationContext

ANONYMOUS_IDENTIFIER = "anonymous"

# 0.00 - 99.99 の 1 万段階
_BUCKET_RESOLUTION = 10000


def rollout_identifier(
    context: EvaluationContext, anonymous_identifier: str = ANONYMOUS_IDENTIFIER
) -> str:
    """バケット計算に使う識別子を返す。user_id > session_id > 匿名の順。"""
    if context.user_id:
        return context.user_id
    if context.session_id:
        return context.session_id
    return anonymous_identifier


def compute_bucket(flag_key: str, identifier: str) -> float:
    """識別子のバケット値を [0, 100) の範囲で返す。

    SHA-256("{flag_key}:{identifier}") の先頭 4 バイトを符号なし整数
    （ビッグエンディアン）として読み、1 万で割った余りを 100 で割る。
    プロセスや実装を跨いでも同じ値になる。
    """
    digest = hashlib.sha256(f"{flag_key}:{identifier}".encode("utf-8")).digest()
    value = int.from_bytes(digest[:4], "big")
    return (value % _BUCKET_RESOLUTION) / 100


def is_in_rollout(flag_key: str, identifier: str, percentage: float) -> bool:
    """ロールアウト対象なら True。"""
    if percentage >= 100:
        return True
    if percentage <= 0:
        return False
    return compute_bucket(flag_key, identifier) < percentage
