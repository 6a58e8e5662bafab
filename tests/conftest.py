"""featureflag テスト共通フィクスチャ"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest
from pathfinder_featureflag import (
    FlagAdministrator,
    FlagDefinition,
    FlagEvaluator,
    InMemoryAuditClient,
    InMemoryCacheClient,
    InMemoryConfigurationStore,
)

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


def fixed_clock() -> datetime:
    return NOW


def make_flag(key: str, **record: Any) -> FlagDefinition:
    """文字列レコードからフラグ定義を作る。"""
    return FlagDefinition.from_record({"key": key, **record})


@pytest.fixture
def store() -> InMemoryConfigurationStore:
    return InMemoryConfigurationStore()


@pytest.fixture
def cache() -> InMemoryCacheClient:
    return InMemoryCacheClient()


@pytest.fixture
def audit() -> InMemoryAuditClient:
    return InMemoryAuditClient()


@pytest.fixture
def evaluator(
    store: InMemoryConfigurationStore, cache: InMemoryCacheClient
) -> FlagEvaluator:
    return FlagEvaluator(store, cache, clock=fixed_clock)


@pytest.fixture
def admin(
    store: InMemoryConfigurationStore,
    audit: InMemoryAuditClient,
    cache: InMemoryCacheClient,
) -> FlagAdministrator:
    return FlagAdministrator(store, audit, cache)
