"""Sink contract and an in-memory implementation."""

import itertools
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock
from typing import Dict, List, Optional

from ..errors import StatusUpdateError
from ..models.asset import AssetInfo, TargetInfo, TargetLabel
from ..models.flow import ConnectionRecord
from ..models.job import AnalysisResults, JobStatus


class Sink(ABC):
    """
    Persistence collaborator for finalized analysis records.

    Shared by every worker, so implementations must serialize access.
    Record-level failures are reported as SinkWriteError, status
    failures as StatusUpdateError.
    """

    @abstractmethod
    def create_job(self, name: str) -> int:
        """Register a new job in the pending state and return its id."""

    @abstractmethod
    def update_job_status(
        self, job_id: int, status: JobStatus, error_msg: str = ""
    ) -> None:
        """Record a job status transition."""

    @abstractmethod
    def save_asset(
        self,
        job_id: int,
        ip_address: str,
        os_type: str,
        os_confidence: float,
        mac_address: Optional[str],
    ) -> None:
        """Persist one asset."""

    @abstractmethod
    def save_target(self, job_id: int, ip_address: str, label: TargetLabel) -> None:
        """Persist one target."""

    @abstractmethod
    def save_tcp_connection(self, job_id: int, record: ConnectionRecord) -> None:
        """Persist one TCP connection."""

    @abstractmethod
    def save_other_connection(self, job_id: int, record: ConnectionRecord) -> None:
        """Persist one UDP or ICMP connection."""

    @abstractmethod
    def get_results(self, job_id: int) -> Optional[AnalysisResults]:
        """Read back everything stored for a job."""


@dataclass
class _JobRecord:
    name: str
    status: JobStatus = JobStatus.PENDING
    error_msg: str = ""
    history: List[JobStatus] = field(default_factory=list)


class MemorySink(Sink):
    """Thread-safe in-memory sink."""

    def __init__(self):
        self._lock = Lock()
        self._ids = itertools.count(1)
        self._jobs: Dict[int, _JobRecord] = {}
        self._assets: Dict[int, List[AssetInfo]] = defaultdict(list)
        self._targets: Dict[int, List[TargetInfo]] = defaultdict(list)
        self._tcp: Dict[int, List[ConnectionRecord]] = defaultdict(list)
        self._other: Dict[int, List[ConnectionRecord]] = defaultdict(list)

    def create_job(self, name: str) -> int:
        with self._lock:
            job_id = next(self._ids)
            self._jobs[job_id] = _JobRecord(name=name)
            return job_id

    def update_job_status(
        self, job_id: int, status: JobStatus, error_msg: str = ""
    ) -> None:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                # Jobs submitted without create_job() are registered on first update
                job = self._jobs[job_id] = _JobRecord(name=str(job_id))
            if job.status.is_terminal:
                raise StatusUpdateError(
                    f"job {job_id} already {job.status.value}, cannot move to {status.value}"
                )
            job.status = status
            job.error_msg = error_msg
            job.history.append(status)

    def save_asset(
        self,
        job_id: int,
        ip_address: str,
        os_type: str,
        os_confidence: float,
        mac_address: Optional[str],
    ) -> None:
        asset = AssetInfo(
            ip_address=ip_address,
            mac_address=mac_address,
            os_type=os_type,
            os_confidence=os_confidence,
        )
        with self._lock:
            self._assets[job_id].append(asset)

    def save_target(self, job_id: int, ip_address: str, label: TargetLabel) -> None:
        with self._lock:
            self._targets[job_id].append(TargetInfo(ip_address, label))

    def save_tcp_connection(self, job_id: int, record: ConnectionRecord) -> None:
        with self._lock:
            self._tcp[job_id].append(record)

    def save_other_connection(self, job_id: int, record: ConnectionRecord) -> None:
        with self._lock:
            self._other[job_id].append(record)

    def get_status(self, job_id: int) -> Optional[JobStatus]:
        with self._lock:
            job = self._jobs.get(job_id)
            return job.status if job else None

    def get_status_history(self, job_id: int) -> List[JobStatus]:
        with self._lock:
            job = self._jobs.get(job_id)
            return list(job.history) if job else []

    def get_results(self, job_id: int) -> Optional[AnalysisResults]:
        with self._lock:
            job = self._jobs.get(job_id)
            if job is None:
                return None
            return AnalysisResults(
                job_id=job_id,
                status=job.status,
                error_msg=job.error_msg,
                assets=list(self._assets.get(job_id, [])),
                targets=list(self._targets.get(job_id, [])),
                tcp_connections=list(self._tcp.get(job_id, [])),
                other_connections=list(self._other.get(job_id, [])),
            )
