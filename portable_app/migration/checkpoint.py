"""
Checkpoint tracking for resumable migration pipelines.

A tracker wraps the ``MigrationCheckpoint`` row of one portable service
within one job. It only mutates the row; persisting it is the job of the
checkpoint callback handed to the pipelines, so a failed commit leaves
the previous checkpoint in place and the work is redone on the next call.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from portable_app.models import db
from portable_app.models.migration.schema import MigrationCheckpoint, MigrationJob, MigrationJobStatus


class CheckpointTracker:
    """Stage/progress bookkeeping for one (job, service category) pair."""

    def __init__(self, job: MigrationJob, checkpoint: MigrationCheckpoint) -> None:
        self.job = job
        self.checkpoint = checkpoint

    @classmethod
    def for_job(cls, job: MigrationJob, category: str, *, session: Session | None = None) -> "CheckpointTracker":
        """Load the checkpoint row for ``category``, creating a fresh one on first use."""

        session = session or db.session
        checkpoint = (
            session.query(MigrationCheckpoint)
            .filter(MigrationCheckpoint.job_id == job.id, MigrationCheckpoint.category == category)
            .one_or_none()
        )
        if checkpoint is None:
            checkpoint = MigrationCheckpoint(
                job_id=job.id,
                category=category,
                stage=0,
                completed=False,
                progress=0,
                total_items=0,
                processed_items=0,
            )
            session.add(checkpoint)
            session.flush()
        return cls(job, checkpoint)

    @property
    def stage(self) -> int:
        return self.checkpoint.stage or 0

    @property
    def completed(self) -> bool:
        return bool(self.checkpoint.completed)

    @property
    def progress(self) -> int:
        return self.checkpoint.progress or 0

    @property
    def total_items(self) -> int:
        return self.checkpoint.total_items or 0

    @property
    def processed_items(self) -> int:
        return self.checkpoint.processed_items or 0

    @property
    def stage_data(self) -> dict[str, Any] | None:
        return self.checkpoint.stage_data

    @stage_data.setter
    def stage_data(self, value: dict[str, Any] | None) -> None:
        # JSON columns only notice reassignment
        self.checkpoint.stage_data = dict(value) if value is not None else None

    def is_cancelled(self) -> bool:
        return bool(self.job.is_cancelled) or self.job.status == MigrationJobStatus.CANCELLED

    def should_skip(self, stage: int) -> bool:
        """True when work for ``stage`` must not run: job cancelled or stage already passed."""

        return self.is_cancelled() or self.stage > stage

    def advance(self, total_items: int | None = None, processed_delta: int = 0) -> None:
        """
        Record forward motion.

        ``total_items`` is only taken the first time a positive value is
        known. ``processed_delta`` may not be negative, and progress never
        moves backwards within a stage.
        """

        if processed_delta < 0:
            raise ValueError("processed_delta must not be negative")

        if total_items is not None and total_items > 0 and self.total_items <= 0:
            self.checkpoint.total_items = total_items

        if processed_delta:
            self.checkpoint.processed_items = self.processed_items + processed_delta

        if self.total_items > 0:
            computed = min(100, (self.processed_items * 100) // self.total_items)
            self.checkpoint.progress = max(self.progress, computed)

    def settle(self, item_count: int) -> None:
        """Pin processed and total to the final item count of the stage."""

        self.checkpoint.total_items = item_count
        self.checkpoint.processed_items = max(self.processed_items, item_count)

    def mark_stage_complete(self) -> None:
        self.checkpoint.progress = 100
        self.checkpoint.completed = True
        self.checkpoint.stage = self.stage + 1
        self.checkpoint.stage_data = None

    def as_dict(self) -> dict[str, Any]:
        return {
            "category": self.checkpoint.category,
            "stage": self.stage,
            "completed": self.completed,
            "progress": self.progress,
            "total_items": self.total_items,
            "processed_items": self.processed_items,
            "stage_data": self.stage_data,
        }
