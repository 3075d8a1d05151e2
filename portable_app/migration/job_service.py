"""
Migration job lifecycle: create, cancel, run one invocation, record outcome.

Scheduling is someone else's problem. Each ``run_export``/``run_import``
call performs at most one slice of work and returns; calling it again
resumes from the persisted checkpoints until the job succeeds.
"""

from __future__ import annotations

import time
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Literal

from flask import current_app, has_app_context
from sqlalchemy.orm import Session

from portable_app.models import Portal, db
from portable_app.models.migration.schema import (
    CollisionResolution,
    MigrationCheckpoint,
    MigrationJob,
    MigrationJobStatus,
    MigrationJobType,
)
from portable_app.utils.migration import get_migration_services, get_slice_seconds, is_migration_enabled

from .contracts import CheckpointCallback
from .errors import InvalidMigrationOptions, MigrationError, MigrationJobNotFound
from .metrics import record_pipeline_invocation
from .registry import resolve_services
from .result import MigrationResult
from .staging import SqlStagingRepository

Direction = Literal["export", "import"]

_TERMINAL_STATUSES = (MigrationJobStatus.SUCCEEDED, MigrationJobStatus.CANCELLED)


class MigrationJobService:
    """Creates migration jobs and drives their portable services."""

    def __init__(self, session: Session | None = None, *, clock: Callable[[], float] = time.monotonic) -> None:
        self.session = session or db.session
        self.clock = clock

    # -- lifecycle -----------------------------------------------------------------

    def get_job(self, job_id: int) -> MigrationJob:
        job = self.session.get(MigrationJob, job_id)
        if job is None:
            raise MigrationJobNotFound(job_id)
        return job

    def create_export_job(
        self,
        *,
        portal_id: int,
        from_date: datetime | None = None,
        to_date: datetime | None = None,
        include_deletions: bool = False,
    ) -> MigrationJob:
        if self.session.get(Portal, portal_id) is None:
            raise InvalidMigrationOptions(f"Portal {portal_id} does not exist.")
        if from_date and to_date and _as_utc(from_date) > _as_utc(to_date):
            raise InvalidMigrationOptions("from_date must be before to_date.")

        job = MigrationJob(
            job_type=MigrationJobType.EXPORT,
            portal_id=portal_id,
            status=MigrationJobStatus.PENDING,
            from_date=_as_utc(from_date) if from_date else None,
            to_date=_as_utc(to_date) if to_date else None,
            include_deletions=include_deletions,
        )
        self.session.add(job)
        self.session.commit()
        return job

    def create_import_job(
        self,
        *,
        portal_id: int,
        source_job_id: int,
        collision_resolution: CollisionResolution | str | None = None,
    ) -> MigrationJob:
        if self.session.get(Portal, portal_id) is None:
            raise InvalidMigrationOptions(f"Portal {portal_id} does not exist.")
        source_job = self.get_job(source_job_id)
        if source_job.job_type != MigrationJobType.EXPORT:
            raise InvalidMigrationOptions(f"Job {source_job_id} is not an export job.")
        if source_job.status != MigrationJobStatus.SUCCEEDED:
            raise InvalidMigrationOptions(f"Export job {source_job_id} has not finished successfully.")

        if collision_resolution is None:
            collision_resolution = _default_collision()
        try:
            resolution = CollisionResolution(collision_resolution)
        except ValueError as exc:
            raise InvalidMigrationOptions(f"Unknown collision resolution '{collision_resolution}'.") from exc

        job = MigrationJob(
            job_type=MigrationJobType.IMPORT,
            portal_id=portal_id,
            status=MigrationJobStatus.PENDING,
            source_job_id=source_job.id,
            collision_resolution=resolution,
        )
        self.session.add(job)
        self.session.flush()
        copied = SqlStagingRepository(job.id, session=self.session).copy_from(source_job.id)
        self.session.commit()
        _log_info("Import job %s staged %s records from export job %s", job.id, copied, source_job.id)
        return job

    def cancel_job(self, job_id: int) -> MigrationJob:
        """Flag a job as cancelled; a running invocation notices at its next checkpoint."""

        job = self.get_job(job_id)
        job.is_cancelled = True
        if job.status in (MigrationJobStatus.PENDING, MigrationJobStatus.RUNNING):
            job.status = MigrationJobStatus.CANCELLED
            job.finished_at = datetime.now(timezone.utc)
        self.session.commit()
        _log_info("Migration job %s cancelled", job.id)
        return job

    def clear_staging(self, job: MigrationJob) -> int:
        """Remove the job's staged rows and reset its checkpoints so export can rerun."""

        removed = SqlStagingRepository(job.id, session=self.session).clear()
        self.session.query(MigrationCheckpoint).filter(MigrationCheckpoint.job_id == job.id).delete(
            synchronize_session=False
        )
        self.session.commit()
        return removed

    # -- running -------------------------------------------------------------------

    def make_checkpoint_callback(self, job: MigrationJob, *, deadline: float | None = None) -> CheckpointCallback:
        """
        Build the callback pipelines invoke after each progress update.

        It commits, making the checkpoint durable, then reports "stop" when
        the job was cancelled (possibly by another process) or the time
        slice is used up.
        """

        def _persist(service: object) -> bool:
            self.session.commit()
            if job.is_cancelled:
                return True
            return deadline is not None and self.clock() >= deadline

        return _persist

    def run_export(self, job_id: int) -> dict[str, Any]:
        job = self.get_job(job_id)
        if job.job_type != MigrationJobType.EXPORT:
            raise InvalidMigrationOptions(f"Job {job_id} is not an export job.")
        if job.status not in _TERMINAL_STATUSES and not self._has_completed_checkpoint(job):
            # Export never resumes mid-stage; leftovers of an interrupted run are discarded.
            self.clear_staging(job)
        return self._run(job, "export")

    def run_import(self, job_id: int) -> dict[str, Any]:
        job = self.get_job(job_id)
        if job.job_type != MigrationJobType.IMPORT:
            raise InvalidMigrationOptions(f"Job {job_id} is not an import job.")
        return self._run(job, "import")

    def get_import_item_estimate(self, job_id: int) -> int:
        job = self.get_job(job_id)
        total = 0
        for descriptor in resolve_services(get_migration_services()):
            service = descriptor.factory(repository=SqlStagingRepository(job.id, session=self.session))
            total += service.get_import_item_estimate()
        return total

    def _has_completed_checkpoint(self, job: MigrationJob) -> bool:
        return (
            self.session.query(MigrationCheckpoint.id)
            .filter(MigrationCheckpoint.job_id == job.id, MigrationCheckpoint.completed.is_(True))
            .first()
            is not None
        )

    def _run(self, job: MigrationJob, direction: Direction) -> dict[str, Any]:
        if has_app_context() and not is_migration_enabled():
            raise MigrationError("Migration is disabled via MIGRATION_ENABLED=false.")
        if job.status in _TERMINAL_STATUSES:
            _log_info("Migration job %s already %s; nothing to do", job.id, job.status.value)
            return {}

        job.status = MigrationJobStatus.RUNNING
        if job.started_at is None:
            job.started_at = datetime.now(timezone.utc)
        self.session.commit()

        slice_seconds = get_slice_seconds()
        deadline = self.clock() + slice_seconds if slice_seconds else None
        callback = self.make_checkpoint_callback(job, deadline=deadline)
        result = MigrationResult()
        summaries: dict[str, Any] = {}
        job_id = job.id

        try:
            for descriptor in resolve_services(get_migration_services()):
                service = descriptor.factory(checkpoint_callback=callback, result=result)
                if direction == "export":
                    summary = service.export_data(job)
                else:
                    summary = service.import_data(job)
                summaries[descriptor.category] = summary
                if getattr(summary, "yielded", False):
                    break
        except Exception as exc:
            self.session.rollback()
            record_pipeline_invocation(direction, "failed")
            failed_job = self.get_job(job_id)
            failed_job.status = MigrationJobStatus.FAILED
            failed_job.error_summary = str(exc)
            failed_job.finished_at = datetime.now(timezone.utc)
            failed_job.summary_json = _merge_summary(failed_job.summary_json, result)
            self.session.commit()
            if has_app_context():
                current_app.logger.exception("Migration job %s failed during %s", job_id, direction)
            raise

        self._finalize(job, result, summaries, direction)
        return summaries

    def _finalize(
        self, job: MigrationJob, result: MigrationResult, summaries: dict[str, Any], direction: Direction
    ) -> None:
        checkpoints = (
            self.session.query(MigrationCheckpoint).filter(MigrationCheckpoint.job_id == job.id).all()
        )
        categories = {descriptor.category for descriptor in resolve_services(get_migration_services())}
        done = {checkpoint.category for checkpoint in checkpoints if checkpoint.completed}

        if job.is_cancelled:
            job.status = MigrationJobStatus.CANCELLED
            job.finished_at = job.finished_at or datetime.now(timezone.utc)
        elif categories <= done:
            job.status = MigrationJobStatus.SUCCEEDED
            job.finished_at = datetime.now(timezone.utc)

        job.summary_json = _merge_summary(
            job.summary_json,
            result,
            checkpoints=checkpoints,
            invocation={"direction": direction, "services": _serialize_summaries(summaries)},
        )
        self.session.commit()
        _log_info(
            "Migration job %s (%s) now %s; services run: %s",
            job.id,
            job.job_type.value,
            job.status.value,
            ", ".join(summaries) or "none",
        )


def _merge_summary(
    existing: dict | None,
    result: MigrationResult,
    *,
    checkpoints: list[MigrationCheckpoint] | None = None,
    invocation: dict[str, Any] | None = None,
) -> dict:
    merged = dict(existing or {})
    payload = result.to_dict()
    merged["entries"] = list(merged.get("entries", [])) + payload["entries"]
    summary = dict(merged.get("summary", {}))
    summary.update(payload["summary"])
    merged["summary"] = summary
    if checkpoints is not None:
        merged["checkpoints"] = {
            checkpoint.category: {
                "stage": checkpoint.stage,
                "completed": checkpoint.completed,
                "progress": checkpoint.progress,
                "processed_items": checkpoint.processed_items,
                "total_items": checkpoint.total_items,
            }
            for checkpoint in checkpoints
        }
    if invocation is not None:
        merged["invocations"] = list(merged.get("invocations", [])) + [invocation]
    return merged


def _serialize_summaries(summaries: dict[str, Any]) -> dict[str, Any]:
    return {category: asdict(outcome) if is_dataclass(outcome) else outcome for category, outcome in summaries.items()}


def _default_collision() -> str:
    if has_app_context():
        return current_app.config.get("MIGRATION_DEFAULT_COLLISION", CollisionResolution.IGNORE.value)
    return CollisionResolution.IGNORE.value


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _log_info(message: str, *args: object) -> None:
    if has_app_context():
        current_app.logger.info(message, *args)
