"""
Workflow migration engine.

Registers migration state on the Flask app and exposes the job service and
portable services used to export and import workflows between portals.
"""

from __future__ import annotations

from typing import Tuple

from flask import Flask

from portable_app.utils.migration import get_migration_services, is_migration_enabled

from .checkpoint import CheckpointTracker
from .correlation import CorrelationMap
from .errors import (
    InvalidMigrationOptions,
    LocalIdAlreadyBound,
    MigrationError,
    MigrationJobNotFound,
    UnknownStagingKind,
    UnresolvedParent,
)
from .job_service import MigrationJobService
from .registry import ServiceDescriptor, get_service_registry, resolve_services
from .result import MigrationResult
from .service import WorkflowsPortableService

MIGRATION_EXTENSION_KEY = "migration"

__all__ = [
    "init_migration",
    "MIGRATION_EXTENSION_KEY",
    "CheckpointTracker",
    "CorrelationMap",
    "InvalidMigrationOptions",
    "LocalIdAlreadyBound",
    "MigrationError",
    "MigrationJobNotFound",
    "MigrationJobService",
    "MigrationResult",
    "ServiceDescriptor",
    "UnknownStagingKind",
    "UnresolvedParent",
    "WorkflowsPortableService",
    "get_service_registry",
    "resolve_services",
]


def _ensure_extension_state(app: Flask) -> dict:
    return app.extensions.setdefault(
        MIGRATION_EXTENSION_KEY,
        {
            "enabled": False,
            "configured_services": (),
            "active_services": (),
        },
    )


def init_migration(app: Flask) -> None:
    """
    Validate configured portable services and record them in
    ``app.extensions['migration']``.
    """
    enabled = is_migration_enabled(app)
    configured: Tuple[str, ...] = get_migration_services(app)

    state = _ensure_extension_state(app)
    state.update({"enabled": enabled, "configured_services": configured})

    if not enabled:
        state["active_services"] = ()
        app.logger.info("Migration disabled via MIGRATION_ENABLED flag; skipping registration.")
        return

    active = tuple(resolve_services(configured, get_service_registry()))
    state["active_services"] = active
    service_names = ", ".join(descriptor.category for descriptor in active) or "none"
    app.logger.info("Migration enabled with services: %s", service_names)
