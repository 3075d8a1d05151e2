"""
Correlation map for source-to-target identifier remapping during import.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Dict, Optional, Tuple

logger = logging.getLogger(__name__)

KIND_WORKFLOW = "workflow"
KIND_STATE = "workflow_state"
KIND_STATE_PERMISSION = "workflow_state_permission"


class CorrelationMap:
    """Tracks (entity kind, source id) -> target id for one migration job."""

    def __init__(self) -> None:
        self._targets: Dict[Tuple[str, int], int] = {}
        self._sources: Dict[Tuple[str, int], int] = {}

    def record(self, kind: str, source_id: int, target_id: int) -> None:
        """
        Store a correlation.

        Re-recording the same pair is a no-op; a source id can never be
        correlated with two different target ids.
        """

        key = (kind, source_id)
        existing = self._targets.get(key)
        if existing is not None and existing != target_id:
            raise ValueError(
                f"{kind} {source_id} already correlated with {existing}; cannot correlate with {target_id}"
            )
        self._targets[key] = target_id
        self._sources[(kind, target_id)] = source_id
        logger.debug("Correlated %s %s -> %s", kind, source_id, target_id)

    def target_id(self, kind: str, source_id: int) -> Optional[int]:
        return self._targets.get((kind, source_id))

    def source_id(self, kind: str, target_id: int) -> Optional[int]:
        return self._sources.get((kind, target_id))

    def __contains__(self, key: Tuple[str, int]) -> bool:
        return key in self._targets

    def __len__(self) -> int:
        return len(self._targets)

    def get_statistics(self) -> Dict[str, int]:
        """Counts of correlations by kind."""

        return dict(Counter(kind for kind, _ in self._targets))

    def clear(self) -> None:
        self._targets.clear()
        self._sources.clear()
