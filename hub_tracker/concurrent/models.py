"""
Data models for concurrent tracking runs.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


@dataclass
class TrackingRunResult:
    """Overall result of a tracking run over many repositories."""
    total_repositories: int
    started_at: datetime
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    completed_at: Optional[datetime] = None
    cancelled: bool = False
    errors: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def execution_time(self) -> float:
        if self.completed_at is None:
            return 0.0
        return (self.completed_at - self.started_at).total_seconds()

    def get_success_rate(self) -> float:
        """Percentage of tracked repositories that reported no errors."""
        tracked = self.succeeded + self.failed
        if tracked == 0:
            return 0.0
        return (self.succeeded / tracked) * 100.0

    def has_errors(self) -> bool:
        return any(self.errors.values())

    def get_summary(self) -> Dict[str, object]:
        return {
            "total_repositories": self.total_repositories,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "success_rate": round(self.get_success_rate(), 2),
            "execution_time": round(self.execution_time, 2),
            "errors": sum(len(errs) for errs in self.errors.values())
        }
