"""
Workflows portable service: the orchestrator's entry point for moving
workflows, workflow states and state permissions between portals.
"""

from __future__ import annotations

from portable_app.models.migration.schema import (
    MigrationJob,
    StagedWorkflow,
    StagedWorkflowState,
    StagedWorkflowStatePermission,
)

from .checkpoint import CheckpointTracker
from .contracts import (
    CheckpointCallback,
    ExportOptions,
    ImportOptions,
    StagingRepository,
    WorkflowReader,
    WorkflowWriter,
)
from .correlation import CorrelationMap
from .live import SqlWorkflowReader, SqlWorkflowWriter
from .pipeline import ExportSummary, ImportSummary, WorkflowExportPipeline, WorkflowImportPipeline
from .result import MigrationResult
from .staging import SqlStagingRepository


class WorkflowsPortableService:
    """
    Runs the workflow export and import pipelines for a job.

    Collaborators default to the SQLAlchemy implementations; pass fakes to
    run the pipelines without a live database behind them. The checkpoint
    callback receives this service, whose ``tracker`` is the checkpoint
    being persisted.
    """

    category = "workflows"
    parent_category = "portal"
    priority = 6

    def __init__(
        self,
        *,
        reader: WorkflowReader | None = None,
        writer: WorkflowWriter | None = None,
        repository: StagingRepository | None = None,
        checkpoint_callback: CheckpointCallback | None = None,
        result: MigrationResult | None = None,
        correlations: CorrelationMap | None = None,
    ) -> None:
        self.reader = reader or SqlWorkflowReader()
        self.writer = writer or SqlWorkflowWriter()
        self.repository = repository
        self.checkpoint_callback = checkpoint_callback
        self.result = result or MigrationResult()
        self.correlations = correlations if correlations is not None else CorrelationMap()
        self.tracker: CheckpointTracker | None = None

    def _bind_repository(self, job: MigrationJob) -> StagingRepository:
        if self.repository is None:
            self.repository = SqlStagingRepository(job.id)
        return self.repository

    def get_import_item_estimate(self) -> int:
        """Number of staged records an import would walk; used for pre-flight progress display."""

        if self.repository is None:
            raise RuntimeError("No staging repository bound; pass one in or run export_data/import_data first.")
        return (
            self.repository.count(StagedWorkflow)
            + self.repository.count(StagedWorkflowState)
            + self.repository.count(StagedWorkflowStatePermission)
        )

    def export_data(self, job: MigrationJob, options: ExportOptions | None = None) -> ExportSummary:
        options = options or ExportOptions.from_job(job)
        self.tracker = CheckpointTracker.for_job(job, self.category)
        pipeline = WorkflowExportPipeline(
            reader=self.reader,
            repository=self._bind_repository(job),
            tracker=self.tracker,
            result=self.result,
            checkpoint_callback=self.checkpoint_callback,
            owner=self,
        )
        return pipeline.export(
            options.portal_id,
            (options.from_date, options.to_date),
            options.include_deletions,
        )

    def import_data(self, job: MigrationJob, options: ImportOptions | None = None) -> ImportSummary:
        options = options or ImportOptions.from_job(job)
        self.tracker = CheckpointTracker.for_job(job, self.category)
        pipeline = WorkflowImportPipeline(
            writer=self.writer,
            repository=self._bind_repository(job),
            tracker=self.tracker,
            result=self.result,
            checkpoint_callback=self.checkpoint_callback,
            correlations=self.correlations,
            owner=self,
        )
        return pipeline.import_(options.portal_id, options.collision_resolution)
