"""Pathfinder featureflag library."""

from .admin import FlagAdministrator
from .audit import AuditClient, AuditEvent, InMemoryAuditClient
from .bucketing import compute_bucket, is_in_rollout
from .cache import CacheClient, InMemoryCacheClient
from .client import FeatureFlagClientProtocol
from .evaluator import FlagEvaluator
from .exceptions import FeatureFlagError, FeatureFlagErrorCodes
from .loader import load_flag_file, load_settings
from .logger import configure_logging, new_logger
from .memory import InMemoryConfigurationStore
from .models import (
    EvaluationContext,
    EvaluationReason,
    EvaluationResult,
    FlagDefinition,
    Override,
    SubjectType,
    TargetingRule,
)
from .settings import EvaluatorSection, FeatureFlagSettings, LogSection
from .store import ConfigurationStore
from .system_flags import seed_system_flags
from .values import FlagType

__all__ = [
    "AuditClient",
    "AuditEvent",
    "CacheClient",
    "ConfigurationStore",
    "EvaluationContext",
    "EvaluationReason",
    "EvaluationResult",
    "EvaluatorSection",
    "FeatureFlagClientProtocol",
    "FeatureFlagError",
    "FeatureFlagErrorCodes",
    "FeatureFlagSettings",
    "FlagAdministrator",
    "FlagDefinition",
    "FlagEvaluator",
    "FlagType",
    "InMemoryAuditClient",
    "InMemoryCacheClient",
    "InMemoryConfigurationStore",
    "LogSection",
    "Override",
    "SubjectType",
    "TargetingRule",
    "compute_bucket",
    "configure_logging",
    "is_in_rollout",
    "load_flag_file",
    "load_settings",
    "new_logger",
    "seed_system_flags",
]
