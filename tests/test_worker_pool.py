import threading
from queue import Full

import pytest

from pcap_profiler.errors import AnalysisFailedError
from pcap_profiler.models.job import AnalysisJob, AnalysisSummary, JobStatus
from pcap_profiler.processing.analyzer import TraceAnalyzer
from pcap_profiler.processing.worker_pool import JobQueue, WorkerPool


class RecordingAnalyzer:
    """Stands in for TraceAnalyzer; records job ids and optionally blocks."""

    def __init__(self, block_on=None):
        self.block_on = block_on
        self.started = threading.Event()
        self.release = threading.Event()
        self.seen = []
        self._lock = threading.Lock()

    def analyze(self, job_id, source):
        with self._lock:
            self.seen.append(job_id)
        if job_id == self.block_on:
            self.started.set()
            self.release.wait(timeout=10)
        return AnalysisSummary(job_id=job_id, status=JobStatus.COMPLETED)


def test_job_queue_is_fifo():
    queue = JobQueue(maxsize=3)
    for i in range(3):
        queue.put(AnalysisJob(job_id=i, source=[]))
    assert queue.full()
    assert [queue.get(timeout=0.1).job_id for _ in range(3)] == [0, 1, 2]
    assert queue.get(timeout=0.01) is None


def test_job_queue_needs_capacity():
    with pytest.raises(ValueError):
        JobQueue(maxsize=0)


def test_submit_blocks_when_queue_is_full():
    analyzer = RecordingAnalyzer(block_on=1)
    pool = WorkerPool(analyzer, num_workers=1, queue=JobQueue(maxsize=1), poll_interval=0.05)
    pool.start()
    try:
        pool.submit(1, [])
        assert analyzer.started.wait(timeout=5)

        pool.submit(2, [])
        with pytest.raises(Full):
            pool.submit(3, [], timeout=0.2)

        analyzer.release.set()
        pool.submit(3, [], timeout=5)
        assert pool.wait_idle(timeout=5)
    finally:
        analyzer.release.set()
        pool.stop(timeout=5)

    assert analyzer.seen == [1, 2, 3]
    assert pool.get_stats().jobs_completed == 3


def test_each_job_runs_exactly_once():
    analyzer = RecordingAnalyzer()
    with WorkerPool(analyzer, num_workers=4, queue=JobQueue(maxsize=5), poll_interval=0.05) as pool:
        for job_id in range(1, 51):
            pool.submit(job_id, [])
        assert pool.wait_idle(timeout=10)

    assert sorted(analyzer.seen) == list(range(1, 51))
    stats = pool.get_stats()
    assert stats.jobs_submitted == 50
    assert stats.jobs_finished == 50


def test_stop_abandons_queued_jobs():
    analyzer = RecordingAnalyzer(block_on=1)
    pool = WorkerPool(analyzer, num_workers=1, queue=JobQueue(maxsize=10), poll_interval=0.05)
    pool.start()
    pool.submit(1, [])
    assert analyzer.started.wait(timeout=5)
    pool.submit(2, [])
    pool.submit(3, [])

    pool.stop(timeout=0.2)
    analyzer.release.set()

    assert [job.job_id for job in pool.pending_jobs()] == [2, 3]
    assert analyzer.seen == [1]
    assert not pool.is_running()
    with pytest.raises(RuntimeError):
        pool.submit(4, [])


def test_failed_jobs_do_not_stop_workers(memory_sink, tmp_path, tcp_event):
    outcomes = {}
    lock = threading.Lock()

    def on_done(job, summary, error):
        with lock:
            outcomes[job.job_id] = error

    pool = WorkerPool(TraceAnalyzer(memory_sink), num_workers=2, poll_interval=0.05)
    pool.add_job_callback(on_done)

    bad = memory_sink.create_job("missing.pcap")
    good = memory_sink.create_job("good")
    with pool:
        pool.submit(bad, str(tmp_path / "missing.pcap"))
        pool.submit(good, [tcp_event("10.0.0.5", 40000, "10.0.0.6", 443)])
        assert pool.wait_idle(timeout=10)

    assert isinstance(outcomes[bad], AnalysisFailedError)
    assert outcomes[good] is None
    assert memory_sink.get_status(bad) == JobStatus.FAILED
    assert memory_sink.get_status(good) == JobStatus.COMPLETED
    stats = pool.get_stats()
    assert stats.jobs_failed == 1
    assert stats.jobs_completed == 1


def test_pool_needs_workers(memory_sink):
    with pytest.raises(ValueError):
        WorkerPool(TraceAnalyzer(memory_sink), num_workers=0)
