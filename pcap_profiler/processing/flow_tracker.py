"""TCP/UDP/ICMP flow tracking."""

from typing import Dict, List

from ..models.packet import PacketEvent, Protocol, TransportHeader
from ..models.flow import (
    ConnectionRecord,
    FlowKey,
    FlowRecord,
    ICMPFlowRecord,
    duration_ms,
)
from .services import UNKNOWN_SERVICE, classify


ICMP_ACCOUNTING_UNIT = 8  # bytes counted per ICMP message (header only)


class FlowTracker:
    """
    Tracks bidirectional flows for one transport protocol.

    Both directions of a conversation fold into one FlowRecord keyed by a
    normalized FlowKey. Byte counts are attributed by comparing each packet
    with the first-seen sender. Flows are never expired: every flow lives
    until ``finalize()`` at the end of the trace.
    """

    protocol: Protocol = Protocol.TCP

    def __init__(self):
        self._flows: Dict[FlowKey, FlowRecord] = {}

    def observe(self, event: PacketEvent) -> FlowRecord:
        """
        Fold a packet into its flow, creating the flow on first sight.

        Raises:
            ValueError: if the event does not carry this tracker's protocol
        """
        transport = event.transport
        if transport is None or transport.protocol != self.protocol:
            raise ValueError(
                f"{type(self).__name__} cannot track {event.protocol} packets"
            )

        src_port = transport.src_port or 0
        dst_port = transport.dst_port or 0
        flow_key = self._get_flow_key(event.src_ip, src_port, event.dst_ip, dst_port)

        flow = self._flows.get(flow_key)
        if flow is None:
            flow = self._create_flow(flow_key, event, src_port, dst_port)

        flow.last_seen = max(flow.last_seen, event.timestamp)
        flow.packets += 1

        if flow.is_forward(event.src_ip, src_port):
            flow.bytes_sent += transport.payload_length
        else:
            flow.bytes_received += transport.payload_length

        self._on_packet(flow, transport)
        return flow

    def _get_flow_key(
        self, src_ip: str, src_port: int, dst_ip: str, dst_port: int
    ) -> FlowKey:
        return FlowKey.bidirectional(
            src_ip, src_port, dst_ip, dst_port, self.protocol.value
        )

    def _create_flow(
        self, key: FlowKey, event: PacketEvent, src_port: int, dst_port: int
    ) -> FlowRecord:
        """Create a new flow seeded with the first-seen direction."""
        flow = FlowRecord(
            key=key,
            src_ip=event.src_ip,
            dst_ip=event.dst_ip,
            src_port=src_port,
            dst_port=dst_port,
            start_time=event.timestamp,
            last_seen=event.timestamp,
            service=self._resolve_service(event.transport),
        )
        self._flows[key] = flow
        return flow

    def _resolve_service(self, transport: TransportHeader) -> str:
        """Service label, resolved once per flow from the destination port."""
        return classify(transport.dst_port)

    def _on_packet(self, flow: FlowRecord, transport: TransportHeader) -> None:
        """Protocol-specific per-packet bookkeeping."""

    def finalize(self) -> List[ConnectionRecord]:
        """Emit one connection record per tracked flow."""
        return [
            ConnectionRecord(
                protocol=self.protocol.value,
                src_ip=flow.src_ip,
                dst_ip=flow.dst_ip,
                src_port=flow.src_port,
                dst_port=flow.dst_port,
                bytes_sent=flow.bytes_sent,
                bytes_received=flow.bytes_received,
                duration_ms=duration_ms(flow.start_time, flow.last_seen),
                service=flow.service,
                start_time=flow.start_time,
                end_time=flow.last_seen,
            )
            for flow in self._flows.values()
        ]

    def get_all_flows(self) -> List[FlowRecord]:
        """Get all tracked flows."""
        return list(self._flows.values())

    def get_flow_count(self) -> int:
        """Get number of tracked flows."""
        return len(self._flows)


class TCPFlowTracker(FlowTracker):
    """
    TCP flow tracker.

    SYN, FIN and RST are recorded per flow but do not terminate it: a
    reused address/port pair later in the same capture lands in the same
    record.
    """

    protocol = Protocol.TCP

    def _on_packet(self, flow: FlowRecord, transport: TransportHeader) -> None:
        flags = transport.get_tcp_flags()
        if flags.syn and not flags.ack:
            flow.syn_seen = True
        if flags.fin:
            flow.fin_seen = True
        if flags.rst:
            flow.rst_seen = True


class UDPFlowTracker(FlowTracker):
    """UDP flow tracker."""

    protocol = Protocol.UDP

    def _resolve_service(self, transport: TransportHeader) -> str:
        # Replies from a well-known port still identify the service
        service = classify(transport.dst_port)
        if service == UNKNOWN_SERVICE:
            service = classify(transport.src_port)
        return service


class ICMPTracker:
    """
    Tracks ICMP traffic per directed (src, dst) address pair.

    Each message adds a fixed accounting unit; payload beyond the ICMP
    header is not counted.
    """

    protocol = Protocol.ICMP

    def __init__(self, unit_size: int = ICMP_ACCOUNTING_UNIT):
        self.unit_size = unit_size
        self._flows: Dict[FlowKey, ICMPFlowRecord] = {}

    def observe(self, src_ip: str, dst_ip: str, timestamp: float) -> ICMPFlowRecord:
        """Account one ICMP message from src_ip to dst_ip."""
        key = FlowKey.directed(src_ip, dst_ip, self.protocol.value)

        flow = self._flows.get(key)
        if flow is None:
            flow = ICMPFlowRecord(
                key=key,
                src_ip=src_ip,
                dst_ip=dst_ip,
                start_time=timestamp,
                last_seen=timestamp,
            )
            self._flows[key] = flow

        flow.last_seen = max(flow.last_seen, timestamp)
        flow.bytes_sent += self.unit_size
        flow.messages += 1
        return flow

    def finalize(self) -> List[ConnectionRecord]:
        """Emit one connection record per directed pair."""
        return [
            ConnectionRecord(
                protocol=self.protocol.value,
                src_ip=flow.src_ip,
                dst_ip=flow.dst_ip,
                src_port=None,
                dst_port=None,
                bytes_sent=flow.bytes_sent,
                bytes_received=0,
                duration_ms=duration_ms(flow.start_time, flow.last_seen),
                service="icmp",
                start_time=flow.start_time,
                end_time=flow.last_seen,
            )
            for flow in self._flows.values()
        ]

    def get_flow_count(self) -> int:
        return len(self._flows)
