"""ロールアウトバケット計算のユニットテスト"""

from pathfinder_featureflag import EvaluationContext, compute_bucket, is_in_rollout
from pathfinder_featureflag.bucketing import rollout_identifier


def test_known_bucket_values() -> None:
    """既知の入力に対するバケット値（SHA-256 先頭 4 バイト mod 10000 / 100）。"""
    assert compute_bucket("new_dashboard", "user-1") == 29.17
    assert compute_bucket("beta", "alice") == 10.54


def test_bucket_range_and_stability() -> None:
    """バケットは [0, 100) で、同じ入力なら同じ値。"""
    for i in range(200):
        bucket = compute_bucket("flag", f"id-{i}")
        assert 0 <= bucket < 100
        assert bucket == compute_bucket("flag", f"id-{i}")


def test_bucket_depends_on_flag_key() -> None:
    """フラグごとに独立したバケットになる。"""
    buckets_a = [compute_bucket("flag-a", f"id-{i}") for i in range(50)]
    buckets_b = [compute_bucket("flag-b", f"id-{i}") for i in range(50)]
    assert buckets_a != buckets_b


def test_is_in_rollout_edges() -> None:
    """0% と 100% の境界。"""
    assert is_in_rollout("beta", "alice", 100) is True
    assert is_in_rollout("beta", "alice", 0) is False
    assert is_in_rollout("beta", "alice", 10.54) is False
    assert is_in_rollout("beta", "alice", 10.55) is True


def test_rollout_identifier_precedence() -> None:
    """user_id > session_id > 匿名。"""
    assert rollout_identifier(EvaluationContext(user_id="u", session_id="s")) == "u"
    assert rollout_identifier(EvaluationContext(session_id="s")) == "s"
    assert rollout_identifier(EvaluationContext()) == "anonymous"
    assert rollout_identifier(EvaluationContext(), "guest") == "guest"
