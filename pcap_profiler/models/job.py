"""Analysis job lifecycle models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional

from .asset import AssetInfo, TargetInfo
from .flow import ConnectionRecord


class JobStatus(Enum):
    """Analysis job states. COMPLETED and FAILED are terminal."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(frozen=True)
class AnalysisJob:
    """
    One unit of queued work.

    ``source`` is an iterable of PacketEvent, or a zero-argument callable
    returning one (opened lazily by the worker).
    """
    job_id: int
    source: Any


@dataclass
class AnalysisSummary:
    """Outcome counters of one orchestrator run."""
    job_id: int
    status: JobStatus = JobStatus.PENDING
    packets_seen: int = 0
    packets_skipped: int = 0
    assets: int = 0
    targets: int = 0
    tcp_connections: int = 0
    other_connections: int = 0
    write_errors: int = 0
    elapsed: float = 0.0
    error: Optional[str] = None


@dataclass
class AnalysisResults:
    """Everything persisted for one job, as read back from a sink."""
    job_id: int
    status: JobStatus
    error_msg: str = ""
    assets: List[AssetInfo] = field(default_factory=list)
    targets: List[TargetInfo] = field(default_factory=list)
    tcp_connections: List[ConnectionRecord] = field(default_factory=list)
    other_connections: List[ConnectionRecord] = field(default_factory=list)

    @property
    def asset_count(self) -> int:
        return len(self.assets)

    @property
    def target_count(self) -> int:
        return len(self.targets)

    @property
    def public_targets(self) -> int:
        return sum(1 for t in self.targets if t.is_public)

    @property
    def local_targets(self) -> int:
        return self.target_count - self.public_targets
