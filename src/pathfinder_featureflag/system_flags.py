"""システムフラグの初期投入"""

from __future__ import annotations

from typing import Any

from .admin import FlagAdministrator
from .models import FlagDefinition

SYSTEM_FLAG_RECORDS: tuple[dict[str, Any], ...] = (
    {
        "key": "self_registration_enabled",
        "name": "Self-Registration",
        "description": "Allow new users to self-register.",
        "type": "boolean",
        "default_value": "false",
        "category": "security",
        "is_system_wide": True,
    },
    {
        "key": "sso_google_enabled",
        "name": "Google SSO",
        "description": "Enable Google Single Sign-On",
        "type": "boolean",
        "default_value": "false",
        "category": "authentication",
        "is_system_wide": True,
    },
    {
        "key": "sso_microsoft_enabled",
        "name": "Microsoft SSO",
        "description": "Enable Microsoft Single Sign-On",
        "type": "boolean",
        "default_value": "false",
        "category": "authentication",
        "is_system_wide": True,
    },
    {
        "key": "rate_limiting_enabled",
        "name": "Global Rate Limiting",
        "description": "Enable rate limiting for API endpoints",
        "type": "boolean",
        "default_value": "true",
        "category": "security",
        "is_system_wide": True,
    },
    {
        "key": "maintenance_mode",
        "name": "Maintenance Mode",
        "description": "Emergency maintenance mode - blocks all non-admin access",
        "type": "boolean",
        "default_value": "false",
        "category": "system",
        "is_system_wide": True,
    },
)


def system_flags() -> list[FlagDefinition]:
    return [FlagDefinition.from_record(record) for record in SYSTEM_FLAG_RECORDS]


async def seed_system_flags(
    administrator: FlagAdministrator, actor_id: str = "system"
) -> list[str]:
    """未登録のシステムフラグを作成し、作成したキーを返す。

    既存のフラグは変更しない。
    """
    created: list[str] = []
    for definition in system_flags():
        if await administrator.get_flag(definition.key) is not None:
            continue
        await administrator.save_flag(
            definition, actor_id, reason="system flag bootstrap"
        )
        created.append(definition.key)
    return created
