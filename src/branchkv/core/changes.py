"""Change tracking for branchkv.

Answers whether the active branch has uncommitted work and applies the
bulk staging operations (discard everything, remove everything).
"""

import logging

from branchkv.core.staging import StagingIndex

logger = logging.getLogger(__name__)


class ChangeTracker:
    """Global dirty flag and bulk operations over a StagingIndex."""

    def __init__(self, staging: StagingIndex):
        self.staging = staging

    def changed(self) -> bool:
        """True iff the staging index holds at least one entry."""
        return self.staging.pending() > 0

    def reset(self) -> None:
        """Discard all staged entries. A no-op on a clean index."""
        if self.changed():
            logger.debug("Discarding %d staged change(s)", self.staging.pending())
        self.staging.clear()

    def remove(self) -> None:
        """Stage removal of every key in the effective view."""
        keys = self.staging.keys()
        for key in keys:
            self.staging.remove_key(key)
        logger.debug("Staged removal of %d key(s)", len(keys))
