"""Exceptions raised by the migration engine."""

from __future__ import annotations


class MigrationError(RuntimeError):
    """Base class for migration engine failures."""


class LocalIdAlreadyBound(MigrationError):
    """Raised when a staged record's local id would be rebound to a different target id."""

    def __init__(self, kind: str, staged_id: int | None, bound_id: int, attempted_id: int) -> None:
        super().__init__(
            f"{kind} {staged_id} is already bound to local id {bound_id}; refusing to rebind to {attempted_id}."
        )
        self.kind = kind
        self.staged_id = staged_id
        self.bound_id = bound_id
        self.attempted_id = attempted_id


class UnknownStagingKind(MigrationError, ValueError):
    """Raised when the staging repository is asked about a type it does not store."""

    def __init__(self, kind: object) -> None:
        super().__init__(f"{kind!r} is not a staged record type.")
        self.kind = kind


class MigrationJobNotFound(MigrationError, LookupError):
    """Raised when a job id does not resolve."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"Migration job {job_id} not found.")
        self.job_id = job_id


class InvalidMigrationOptions(MigrationError, ValueError):
    """Raised when export/import options are inconsistent."""


class UnresolvedParent(MigrationError, LookupError):
    """Raised when a staged child is imported before its parent was correlated."""

    def __init__(self, kind: str, source_id: int) -> None:
        super().__init__(f"No target correlated with {kind} {source_id}.")
        self.kind = kind
        self.source_id = source_id
