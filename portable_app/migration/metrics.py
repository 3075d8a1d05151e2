"""Prometheus metrics helpers for the migration engine."""

from __future__ import annotations

from typing import Literal

from prometheus_client import Counter

from portable_app.utils.migration import metrics_enabled

EntityOutcome = Literal["created", "updated", "skipped", "dropped", "matched"]

_entity_outcomes = Counter(
    "migration_entities_total",
    "Entities handled by migration pipelines, by kind and outcome.",
    ["kind", "outcome"],
)
_pipeline_invocations = Counter(
    "migration_pipeline_invocations_total",
    "Pipeline invocations by direction and result.",
    ["direction", "result"],
)


def record_entity_outcome(kind: str, outcome: EntityOutcome, count: int = 1) -> None:
    """Increment the entity outcome counter."""

    if not metrics_enabled() or count <= 0:
        return
    _entity_outcomes.labels(kind=kind, outcome=outcome).inc(count)


def record_pipeline_invocation(
    direction: Literal["export", "import"],
    result: Literal["skipped", "yielded", "completed", "failed"],
) -> None:
    """Increment the pipeline invocation counter."""

    if not metrics_enabled():
        return
    _pipeline_invocations.labels(direction=direction, result=result).inc()
