"""
Utility helpers for migration configuration checks.
"""

from __future__ import annotations

from typing import Iterable, Tuple

from flask import current_app, has_app_context


def _get_config(app=None):
    if app is not None:
        return app.config
    return current_app.config


def is_migration_enabled(app=None) -> bool:
    """Return True when the migration feature flag is enabled."""
    config = _get_config(app)
    return bool(config.get("MIGRATION_ENABLED", False))


def get_migration_services(app=None) -> Tuple[str, ...]:
    """Return the configured portable service categories."""
    config = _get_config(app)
    services: Iterable[str] = config.get("MIGRATION_SERVICES", ())
    return tuple(services)


def get_slice_seconds(app=None) -> int:
    """Return the per-invocation time budget; 0 means unbounded."""
    config = _get_config(app)
    return max(0, int(config.get("MIGRATION_SLICE_SECONDS", 0) or 0))


def metrics_enabled() -> bool:
    """Metrics default on outside an app context, otherwise follow config."""
    if not has_app_context():
        return True
    return bool(current_app.config.get("MIGRATION_METRICS_ENABLED", True))
