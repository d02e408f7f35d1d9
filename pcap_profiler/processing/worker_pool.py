"""Bounded job queue and fixed pool of analysis workers."""

import logging
import time
from dataclasses import dataclass
from queue import Empty, Queue
from threading import Event, Lock, Thread
from typing import Any, Callable, List, Optional

from ..errors import AnalysisFailedError, StatusUpdateError
from ..models.job import AnalysisJob, AnalysisSummary
from .analyzer import TraceAnalyzer


logger = logging.getLogger(__name__)

DEFAULT_QUEUE_SIZE = 100
DEFAULT_WORKERS = 2

JobCallback = Callable[[AnalysisJob, Optional[AnalysisSummary], Optional[Exception]], None]


class JobQueue:
    """
    Bounded FIFO of analysis jobs.

    Safe for any number of producers and consumers; each job is handed to
    exactly one ``get()`` caller.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize <= 0:
            raise ValueError("job queue needs a positive capacity")
        self.maxsize = maxsize
        self._queue: "Queue[AnalysisJob]" = Queue(maxsize=maxsize)

    def put(self, job: AnalysisJob, timeout: Optional[float] = None) -> None:
        """
        Enqueue a job, blocking while the queue is full.

        Raises:
            queue.Full: if ``timeout`` elapses first
        """
        self._queue.put(job, block=True, timeout=timeout)

    def get(self, timeout: float = 1.0) -> Optional[AnalysisJob]:
        """Get next job, or None if none arrived within timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def get_nowait(self) -> Optional[AnalysisJob]:
        """Get next job without blocking."""
        try:
            return self._queue.get_nowait()
        except Empty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until every enqueued job has been marked done."""
        q = self._queue
        deadline = None if timeout is None else time.time() + timeout
        with q.all_tasks_done:
            while q.unfinished_tasks:
                remaining = None if deadline is None else deadline - time.time()
                if remaining is not None and remaining <= 0:
                    return False
                q.all_tasks_done.wait(remaining)
        return True

    def qsize(self) -> int:
        return self._queue.qsize()

    def full(self) -> bool:
        return self._queue.full()


@dataclass
class PoolStats:
    """Counters for worker pool."""
    jobs_submitted: int = 0
    jobs_completed: int = 0
    jobs_failed: int = 0
    start_time: float = 0.0

    @property
    def jobs_finished(self) -> int:
        return self.jobs_completed + self.jobs_failed

    @property
    def duration(self) -> float:
        if self.start_time == 0:
            return 0.0
        return time.time() - self.start_time


class WorkerPool:
    """
    Fixed set of worker threads consuming a shared JobQueue.

    Each worker runs one job at a time to completion. ``stop()`` lets
    running jobs finish but does not drain the queue: jobs still waiting
    are abandoned and reported by ``pending_jobs()``.
    """

    def __init__(
        self,
        analyzer: TraceAnalyzer,
        num_workers: int = DEFAULT_WORKERS,
        queue: Optional[JobQueue] = None,
        poll_interval: float = 0.2,
    ):
        if num_workers <= 0:
            raise ValueError("worker pool needs at least one worker")
        self.analyzer = analyzer
        self.num_workers = num_workers
        self.queue = queue or JobQueue()
        self.poll_interval = poll_interval

        self._running = False
        self._stopped = False
        self._stop_event = Event()
        self._threads: List[Thread] = []
        self._abandoned: List[AnalysisJob] = []

        self._stats = PoolStats()
        self._stats_lock = Lock()

        self._job_callbacks: List[JobCallback] = []

    def add_job_callback(self, callback: JobCallback) -> None:
        """Add callback invoked after each job, with its summary or error."""
        self._job_callbacks.append(callback)

    def start(self) -> None:
        """Start all workers."""
        if self._running:
            return
        if self._stopped:
            raise RuntimeError("worker pool cannot be restarted")

        self._running = True
        self._stop_event.clear()
        self._stats.start_time = time.time()

        logger.info("Starting worker pool with %d workers", self.num_workers)
        for worker_id in range(1, self.num_workers + 1):
            thread = Thread(
                target=self._worker_loop,
                args=(worker_id,),
                daemon=True,
                name=f"analysis-worker-{worker_id}",
            )
            thread.start()
            self._threads.append(thread)

    def submit(self, job_id: int, source: Any, timeout: Optional[float] = None) -> None:
        """
        Queue a trace for analysis, blocking while the queue is full.

        Raises:
            RuntimeError: if the pool has been stopped
            queue.Full: if ``timeout`` elapses before space frees up
        """
        if self._stopped:
            raise RuntimeError("worker pool is stopped")
        self.queue.put(AnalysisJob(job_id=job_id, source=source), timeout=timeout)
        with self._stats_lock:
            self._stats.jobs_submitted += 1
        logger.debug("Queued analysis %d", job_id)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal workers to stop after their current job and wait for them."""
        if self._stopped:
            return
        logger.info("Stopping worker pool")
        self._stopped = True
        self._stop_event.set()

        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads.clear()
        self._running = False

        abandoned = self.pending_jobs()
        if abandoned:
            logger.warning(
                "Worker pool stopped with %d queued jobs not analyzed: %s",
                len(abandoned), [job.job_id for job in abandoned],
            )
        logger.info("Worker pool stopped")

    def pending_jobs(self) -> List[AnalysisJob]:
        """Jobs abandoned by ``stop()``: never dequeued, or dequeued after the stop signal."""
        if not self._stopped:
            return []
        while True:
            job = self.queue.get_nowait()
            if job is None:
                break
            self._abandoned.append(job)
            self.queue.task_done()
        return list(self._abandoned)

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Wait until the queue is empty and no job is running."""
        return self.queue.wait_idle(timeout)

    def _worker_loop(self, worker_id: int) -> None:
        """Dequeue and run jobs until stopped."""
        logger.info("Worker %d started", worker_id)

        while not self._stop_event.is_set():
            job = self.queue.get(timeout=self.poll_interval)
            if job is None:
                continue

            try:
                if self._stop_event.is_set():
                    self._abandoned.append(job)
                    break
                self._run_job(worker_id, job)
            finally:
                self.queue.task_done()

        logger.info("Worker %d stopping", worker_id)

    def _run_job(self, worker_id: int, job: AnalysisJob) -> None:
        """Run one job; no exception escapes to the worker loop."""
        logger.info("Worker %d processing analysis %d", worker_id, job.job_id)
        summary: Optional[AnalysisSummary] = None
        error: Optional[Exception] = None

        try:
            summary = self.analyzer.analyze(job.job_id, job.source)
            logger.info("Worker %d completed analysis %d", worker_id, job.job_id)
        except AnalysisFailedError as e:
            error = e
            logger.error("Worker %d failed to analyze %d: %s", worker_id, job.job_id, e.message)
        except StatusUpdateError as e:
            error = e
            logger.error("Worker %d could not record status of %d: %s", worker_id, job.job_id, e)
        except Exception as e:
            error = e
            logger.exception("Worker %d crashed on analysis %d", worker_id, job.job_id)

        with self._stats_lock:
            if error is None:
                self._stats.jobs_completed += 1
            else:
                self._stats.jobs_failed += 1

        for callback in self._job_callbacks:
            try:
                callback(job, summary, error)
            except Exception:
                logger.exception("Job callback failed for analysis %d", job.job_id)

    def get_stats(self) -> PoolStats:
        """Get pool statistics."""
        with self._stats_lock:
            return PoolStats(
                jobs_submitted=self._stats.jobs_submitted,
                jobs_completed=self._stats.jobs_completed,
                jobs_failed=self._stats.jobs_failed,
                start_time=self._stats.start_time,
            )

    def is_running(self) -> bool:
        """Check if pool is running."""
        return self._running

    def __enter__(self) -> "WorkerPool":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()
