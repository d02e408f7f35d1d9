"""Processing layer: flow tracking, classification and job scheduling."""

from .flow_tracker import FlowTracker, TCPFlowTracker, UDPFlowTracker, ICMPTracker
from .services import classify
from .addresses import is_public, classify_target
from .fingerprint import OSFingerprinter, OSSignalState
from .analyzer import TraceAnalyzer, TrafficProfile, ProfileResult
from .worker_pool import JobQueue, WorkerPool

__all__ = [
    "FlowTracker",
    "TCPFlowTracker",
    "UDPFlowTracker",
    "ICMPTracker",
    "classify",
    "is_public",
    "classify_target",
    "OSFingerprinter",
    "OSSignalState",
    "TraceAnalyzer",
    "TrafficProfile",
    "ProfileResult",
    "JobQueue",
    "WorkerPool",
]
