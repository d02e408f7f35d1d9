"""Flow and connection tracking models."""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


@dataclass(frozen=True)
class FlowKey:
    """
    Unique identifier for a tracked flow.
    Frozen for hashability.

    Two construction strategies exist: ``bidirectional`` orders the
    endpoints so both directions of a TCP/UDP conversation share one key,
    ``directed`` keeps (src, dst) as observed and carries no ports.
    """
    addr_a: str
    port_a: int
    addr_b: str
    port_b: int
    protocol: str

    @classmethod
    def bidirectional(
        cls, src_ip: str, src_port: int, dst_ip: str, dst_port: int, protocol: str
    ) -> "FlowKey":
        """Create normalized flow key (smaller IP/port first)."""
        if (src_ip, src_port) <= (dst_ip, dst_port):
            return cls(src_ip, src_port, dst_ip, dst_port, protocol)
        return cls(dst_ip, dst_port, src_ip, src_port, protocol)

    @classmethod
    def directed(cls, src_ip: str, dst_ip: str, protocol: str) -> "FlowKey":
        """Create a key that keeps the observed direction."""
        return cls(src_ip, 0, dst_ip, 0, protocol)

    def __str__(self) -> str:
        return f"{self.addr_a}:{self.port_a} <-> {self.addr_b}:{self.port_b} ({self.protocol})"


def duration_ms(start: float, end: float) -> int:
    """Whole milliseconds between two capture timestamps, truncated."""
    micros = int(round((end - start) * 1_000_000))
    return max(micros, 0) // 1000


def format_timestamp(ts: float) -> str:
    """RFC 3339 representation of a capture timestamp."""
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


@dataclass
class FlowRecord:
    """Running state of one TCP or UDP flow, as first seen."""
    key: FlowKey
    src_ip: str
    dst_ip: str
    src_port: int
    dst_port: int
    start_time: float
    last_seen: float
    service: str = "unknown"

    bytes_sent: int = 0
    bytes_received: int = 0
    packets: int = 0

    # Informational TCP flags; they never close or split the flow
    syn_seen: bool = False
    fin_seen: bool = False
    rst_seen: bool = False

    def is_forward(self, src_ip: str, src_port: Optional[int]) -> bool:
        """Check if a packet travels in the first-seen direction."""
        return src_ip == self.src_ip and src_port == self.src_port


@dataclass
class ICMPFlowRecord:
    """Running state of ICMP traffic for one directed address pair."""
    key: FlowKey
    src_ip: str
    dst_ip: str
    start_time: float
    last_seen: float
    bytes_sent: int = 0
    messages: int = 0


@dataclass(frozen=True)
class ConnectionRecord:
    """Finalized connection emitted by a tracker at end of stream."""
    protocol: str
    src_ip: str
    dst_ip: str
    src_port: Optional[int]
    dst_port: Optional[int]
    bytes_sent: int
    bytes_received: int
    duration_ms: int
    service: str
    start_time: float
    end_time: float

    @property
    def start_time_iso(self) -> str:
        return format_timestamp(self.start_time)

    @property
    def end_time_iso(self) -> str:
        return format_timestamp(self.end_time)

    @property
    def total_bytes(self) -> int:
        return self.bytes_sent + self.bytes_received

    def to_dict(self) -> dict:
        """Convert record to a plain dictionary."""
        return {
            "protocol": self.protocol,
            "src_ip": self.src_ip,
            "dst_ip": self.dst_ip,
            "src_port": self.src_port,
            "dst_port": self.dst_port,
            "bytes_sent": self.bytes_sent,
            "bytes_received": self.bytes_received,
            "duration_ms": self.duration_ms,
            "service": self.service,
            "start_time": self.start_time_iso,
            "end_time": self.end_time_iso,
        }
