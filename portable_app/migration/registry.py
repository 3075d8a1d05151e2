"""
Portable service registry.

Services register metadata here so configuration can be validated and
services run in dependency order (lower priority first).
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Iterable, Mapping, Sequence


@dataclass(frozen=True)
class ServiceDescriptor:
    """Metadata describing a portable service."""

    category: str
    parent_category: str | None
    priority: int
    factory: Callable[..., object]
    summary: str | None = None


def _workflows_factory(**kwargs):
    from .service import WorkflowsPortableService

    return WorkflowsPortableService(**kwargs)


def get_service_registry() -> Mapping[str, ServiceDescriptor]:
    """Return the registry of portable services keyed by category."""

    return OrderedDict(
        (
            (
                "workflows",
                ServiceDescriptor(
                    category="workflows",
                    parent_category="portal",
                    priority=6,
                    factory=_workflows_factory,
                    summary="Content workflows with their states and state permissions.",
                ),
            ),
        )
    )


def resolve_services(
    configured: Sequence[str],
    registry: Mapping[str, ServiceDescriptor] | None = None,
) -> Iterable[ServiceDescriptor]:
    """
    Map configured categories to descriptors sorted by priority, raising on unknowns.
    """
    registry = registry or get_service_registry()
    unknown = sorted({category for category in configured if category not in registry})
    if unknown:
        raise ValueError(
            "Unknown portable services configured: "
            + ", ".join(unknown)
            + ". Update MIGRATION_SERVICES or register these services first."
        )
    return sorted((registry[category] for category in configured), key=lambda descriptor: descriptor.priority)
