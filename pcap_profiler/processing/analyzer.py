"""Trace analysis pipeline."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List

from ..capture.pcap_source import open_source
from ..errors import AnalysisFailedError, StatusUpdateError
from ..models.asset import AssetInfo, TargetInfo
from ..models.flow import ConnectionRecord
from ..models.job import AnalysisSummary, JobStatus
from ..models.packet import PacketEvent, Protocol
from ..storage.sink import Sink
from .addresses import classify_target
from .fingerprint import OSFingerprinter
from .flow_tracker import ICMPTracker, TCPFlowTracker, UDPFlowTracker


logger = logging.getLogger(__name__)

HTTP_PORT = 80
SSH_PORT = 22
DHCP_SERVER_PORT = 67


@dataclass
class ProfileResult:
    """Finalized output of one trace."""
    assets: List[AssetInfo] = field(default_factory=list)
    targets: List[TargetInfo] = field(default_factory=list)
    tcp_connections: List[ConnectionRecord] = field(default_factory=list)
    udp_connections: List[ConnectionRecord] = field(default_factory=list)
    icmp_connections: List[ConnectionRecord] = field(default_factory=list)

    @property
    def other_connections(self) -> List[ConnectionRecord]:
        return self.udp_connections + self.icmp_connections


class TrafficProfile:
    """
    All mutable state of one analysis: flow trackers, fingerprint engine,
    asset map and target set.

    One instance per job, owned by the worker running it and discarded
    afterwards.
    """

    def __init__(self):
        self.tcp_tracker = TCPFlowTracker()
        self.udp_tracker = UDPFlowTracker()
        self.icmp_tracker = ICMPTracker()
        self.fingerprinter = OSFingerprinter()

        self._assets: Dict[str, AssetInfo] = {}
        # dict keeps first-seen order of destinations
        self._targets: Dict[str, None] = {}

        self.packets_seen = 0
        self.packets_skipped = 0

    def observe(self, event: PacketEvent) -> bool:
        """
        Route one packet to the trackers and analyzers.

        Returns False if the packet had no network layer and was skipped.
        """
        self.packets_seen += 1

        if not event.has_network_layer:
            self.packets_skipped += 1
            return False

        src_ip = event.src_ip
        asset = self._assets.get(src_ip)
        if asset is None:
            asset = self._assets[src_ip] = AssetInfo(ip_address=src_ip)
        if event.link_src:
            asset.mac_address = event.link_src

        self._targets[event.dst_ip] = None

        transport = event.transport
        if transport is None:
            return True

        if transport.protocol == Protocol.TCP:
            self.tcp_tracker.observe(event)

            if event.ttl is not None:
                self.fingerprinter.analyze_tcp(src_ip, transport.window_size, event.ttl)

            if event.payload:
                if transport.has_port(HTTP_PORT):
                    self.fingerprinter.analyze_http(src_ip, event.payload)
                if transport.has_port(SSH_PORT):
                    self.fingerprinter.analyze_ssh(src_ip, event.payload)

        elif transport.protocol == Protocol.UDP:
            self.udp_tracker.observe(event)

            if event.payload and transport.has_port(DHCP_SERVER_PORT):
                self.fingerprinter.analyze_dhcp(src_ip, event.payload)

        elif transport.protocol == Protocol.ICMP:
            self.icmp_tracker.observe(event.src_ip, event.dst_ip, event.timestamp)

        return True

    def finalize(self) -> ProfileResult:
        """Finalize trackers, merge fingerprints and label targets."""
        for ip, state in self.fingerprinter.get_results().items():
            asset = self._assets.get(ip)
            if asset is not None:
                asset.os_type = state.os_type
                asset.os_confidence = state.confidence

        return ProfileResult(
            assets=list(self._assets.values()),
            targets=[TargetInfo(ip, classify_target(ip)) for ip in self._targets],
            tcp_connections=self.tcp_tracker.finalize(),
            udp_connections=self.udp_tracker.finalize(),
            icmp_connections=self.icmp_tracker.finalize(),
        )


class TraceAnalyzer:
    """
    Drives one packet stream through a TrafficProfile and persists the
    result through a Sink.

    Status moves pending -> processing -> completed | failed.
    """

    def __init__(self, sink: Sink):
        self.sink = sink

    def _set_status(self, job_id: int, status: JobStatus, error_msg: str = "") -> None:
        try:
            self.sink.update_job_status(job_id, status, error_msg)
        except StatusUpdateError:
            raise
        except Exception as e:
            raise StatusUpdateError(
                f"failed to set analysis {job_id} to {status.value}: {e}"
            ) from e

    def _fail(self, summary: AnalysisSummary, message: str) -> AnalysisFailedError:
        summary.status = JobStatus.FAILED
        summary.error = message
        self._set_status(summary.job_id, JobStatus.FAILED, message)
        return AnalysisFailedError(summary.job_id, message)

    def analyze(self, job_id: int, source: Any) -> AnalysisSummary:
        """
        Run one analysis to completion.

        Raises:
            AnalysisFailedError: source could not be opened or read; the
                job was marked failed
            StatusUpdateError: the sink could not record a status change
        """
        start = time.time()
        summary = AnalysisSummary(job_id=job_id)
        logger.info("Starting analysis %d (%r)", job_id, source)

        self._set_status(job_id, JobStatus.PROCESSING)
        summary.status = JobStatus.PROCESSING

        try:
            events = open_source(source)
        except Exception as e:
            raise self._fail(summary, str(e)) from e

        profile = TrafficProfile()
        try:
            for event in events:
                profile.observe(event)
        except Exception as e:
            raise self._fail(summary, str(e)) from e
        finally:
            summary.packets_seen = profile.packets_seen
            summary.packets_skipped = profile.packets_skipped

        result = profile.finalize()
        self._persist(job_id, result, summary)

        self._set_status(job_id, JobStatus.COMPLETED)
        summary.status = JobStatus.COMPLETED
        summary.elapsed = time.time() - start

        logger.info(
            "Analysis %d completed: %d packets, %d assets, %d targets, "
            "%d tcp, %d other connections (%d write errors) in %.2fs",
            job_id, summary.packets_seen, summary.assets, summary.targets,
            summary.tcp_connections, summary.other_connections,
            summary.write_errors, summary.elapsed,
        )
        return summary

    def _write(self, summary: AnalysisSummary, what: str, fn: Callable[[], None]) -> bool:
        """Attempt one record write; failures are logged and counted."""
        try:
            fn()
            return True
        except Exception as e:
            summary.write_errors += 1
            logger.warning("Analysis %d: failed to save %s: %s", summary.job_id, what, e)
            return False

    def _persist(self, job_id: int, result: ProfileResult, summary: AnalysisSummary) -> None:
        sink = self.sink

        for asset in result.assets:
            if self._write(summary, f"asset {asset.ip_address}", lambda a=asset: sink.save_asset(
                job_id, a.ip_address, a.os_type, a.os_confidence, a.mac_address,
            )):
                summary.assets += 1

        for target in result.targets:
            if self._write(summary, f"target {target.ip_address}", lambda t=target: sink.save_target(
                job_id, t.ip_address, t.label,
            )):
                summary.targets += 1

        for conn in result.tcp_connections:
            if self._write(summary, "TCP connection", lambda c=conn: sink.save_tcp_connection(job_id, c)):
                summary.tcp_connections += 1

        for conn in result.other_connections:
            if self._write(summary, f"{conn.protocol} connection", lambda c=conn: sink.save_other_connection(job_id, c)):
                summary.other_connections += 1
