"""Exception hierarchy for pcap profiler."""


class ProfilerError(Exception):
    """Base class for all profiler errors."""


class SourceOpenError(ProfilerError):
    """A packet source could not be opened or read."""


class AnalysisFailedError(ProfilerError):
    """An analysis job ended in the failed state."""

    def __init__(self, job_id: int, message: str):
        super().__init__(f"analysis {job_id} failed: {message}")
        self.job_id = job_id
        self.message = message


class StatusUpdateError(ProfilerError):
    """The sink could not record a job status transition."""


class SinkWriteError(ProfilerError):
    """A single record could not be persisted."""


class SourceReadError(ProfilerError):
    """A packet source failed part-way through the trace."""
