"""Human-readable log of what a migration job did."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from flask import current_app, has_app_context


@dataclass(frozen=True)
class MigrationLogEntry:
    """One create/update/skip/drop line."""

    title: str
    value: str
    timestamp: datetime


@dataclass
class MigrationResult:
    """
    Collects log entries and summary lines for a job.

    Entries are mirrored to the application logger so progress is visible
    while a job runs; ``to_dict`` is what the job service persists.
    """

    entries: list[MigrationLogEntry] = field(default_factory=list)
    summary: dict[str, str] = field(default_factory=dict)

    def add_log_entry(self, title: str, value: object = "") -> None:
        entry = MigrationLogEntry(title=title, value=str(value), timestamp=datetime.now(timezone.utc))
        self.entries.append(entry)
        if has_app_context():
            current_app.logger.info("%s: %s", title, entry.value)

    def add_summary(self, title: str, value: object) -> None:
        self.summary[title] = str(value)

    def titles(self) -> list[str]:
        return [entry.title for entry in self.entries]

    def to_dict(self) -> dict[str, Any]:
        return {
            "entries": [
                {"title": entry.title, "value": entry.value, "timestamp": entry.timestamp.isoformat()}
                for entry in self.entries
            ],
            "summary": dict(self.summary),
        }
