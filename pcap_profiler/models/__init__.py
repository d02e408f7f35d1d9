"""Data models for pcap profiler."""

from .packet import PacketEvent, TransportHeader, Protocol, TCPFlags
from .flow import FlowKey, FlowRecord, ICMPFlowRecord, ConnectionRecord
from .asset import AssetInfo, TargetInfo, TargetLabel, UNKNOWN_OS
from .job import AnalysisJob, AnalysisResults, AnalysisSummary, JobStatus

__all__ = [
    "PacketEvent",
    "TransportHeader",
    "Protocol",
    "TCPFlags",
    "FlowKey",
    "FlowRecord",
    "ICMPFlowRecord",
    "ConnectionRecord",
    "AssetInfo",
    "TargetInfo",
    "TargetLabel",
    "UNKNOWN_OS",
    "AnalysisJob",
    "AnalysisResults",
    "AnalysisSummary",
    "JobStatus",
]
