"""OpenTelemetry フラグ評価メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("pathfinder.featureflag", version="0.1.0")

flag_evaluations_total = _meter.create_counter(
    name="flag_evaluations_total",
    description="Total number of feature flag evaluations",
    unit="1",
)

flag_evaluation_duration_seconds = _meter.create_histogram(
    name="flag_evaluation_duration_seconds",
    description="Feature flag evaluation duration in seconds",
    unit="s",
)

flag_cache_lookups_total = _meter.create_counter(
    name="flag_cache_lookups_total",
    description="Feature flag cache lookups by result (hit, miss, error)",
    unit="1",
)
