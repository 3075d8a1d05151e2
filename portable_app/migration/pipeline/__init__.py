"""Export and import pipelines."""

from __future__ import annotations

from .export import EXPORT_STAGE, ExportSummary, WorkflowExportPipeline, normalize_window
from .load import IMPORT_STAGE, RESUME_CURSOR_KEY, ImportSummary, WorkflowImportPipeline

__all__ = [
    "EXPORT_STAGE",
    "ExportSummary",
    "IMPORT_STAGE",
    "ImportSummary",
    "RESUME_CURSOR_KEY",
    "WorkflowExportPipeline",
    "WorkflowImportPipeline",
    "normalize_window",
]
