"""structlog ベースのロガー設定

ライブラリ内の各モジュールは ``structlog.get_logger(__name__)`` で
``pathfinder_featureflag.*`` 配下の stdlib ロガーに出力する。
ログレベルはパッケージのルートロガーに設定する。
"""

from __future__ import annotations

import logging
import sys

import structlog

from .settings import FeatureFlagSettings

LOGGER_NAME = "pathfinder_featureflag"


def _renderer(format: str) -> list[structlog.types.Processor]:
    if format == "json":
        return [
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer()]


def new_logger(level: str = "INFO", format: str = "json") -> structlog.stdlib.BoundLogger:
    """structlog を設定し、パッケージのロガーを返す。

    Args:
        level: ログレベル ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")。
            未知の値は INFO として扱う。
        format: 出力形式 ("json" or "text")

    Returns:
        ``pathfinder_featureflag`` ロガーに束縛された structlog.stdlib.BoundLogger
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    if not logging.getLogger().handlers:
        logging.basicConfig(format="%(message)s", stream=sys.stdout)
    logging.getLogger(LOGGER_NAME).setLevel(log_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            *_renderer(format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    return structlog.stdlib.get_logger(LOGGER_NAME)


def configure_logging(settings: FeatureFlagSettings) -> structlog.stdlib.BoundLogger:
    """設定の ``log`` セクションに従ってロガーを設定する。"""
    return new_logger(settings.log.level, settings.log.format)
