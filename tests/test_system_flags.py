"""システムフラグ初期投入のユニットテスト"""

from conftest import make_flag
from pathfinder_featureflag import (
    EvaluationContext,
    FlagAdministrator,
    FlagEvaluator,
    InMemoryAuditClient,
    seed_system_flags,
)
from pathfinder_featureflag.system_flags import system_flags

SYSTEM_KEYS = [
    "self_registration_enabled",
    "sso_google_enabled",
    "sso_microsoft_enabled",
    "rate_limiting_enabled",
    "maintenance_mode",
]


def test_system_flags_are_system_wide_booleans() -> None:
    """全システムフラグは system-wide の boolean。"""
    definitions = system_flags()
    assert [d.key for d in definitions] == SYSTEM_KEYS
    assert all(d.is_system_wide for d in definitions)
    assert all(d.type.value == "boolean" for d in definitions)


async def test_seed_creates_all_flags(
    admin: FlagAdministrator, evaluator: FlagEvaluator, audit: InMemoryAuditClient
) -> None:
    """初回投入で 5 フラグが作成される。"""
    created = await seed_system_flags(admin)
    assert created == SYSTEM_KEYS

    ctx = EvaluationContext(user_id="u1")
    assert await evaluator.is_enabled("rate_limiting_enabled", ctx) is True
    assert await evaluator.is_enabled("maintenance_mode", ctx) is False
    assert await evaluator.is_enabled("self_registration_enabled", ctx) is False

    events = await audit.events_for("maintenance_mode")
    assert events[0].actor_id == "system"
    assert events[0].reason == "system flag bootstrap"


async def test_seed_is_idempotent(admin: FlagAdministrator, audit: InMemoryAuditClient) -> None:
    """2 回目の投入では何も作成しない。"""
    await seed_system_flags(admin)
    assert await seed_system_flags(admin) == []
    assert len(audit.events) == len(SYSTEM_KEYS)


async def test_seed_keeps_existing_flag(admin: FlagAdministrator) -> None:
    """既存フラグは上書きしない。"""
    await admin.save_flag(
        make_flag("self_registration_enabled", default_value="true"), "admin"
    )
    created = await seed_system_flags(admin, actor_id="bootstrap")
    assert "self_registration_enabled" not in created
    existing = await admin.get_flag("self_registration_enabled")
    assert existing is not None
    assert existing.default_value is True
