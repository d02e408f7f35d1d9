"""Packet event data structures."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Protocol(Enum):
    """Transport protocols tracked per flow."""
    TCP = "TCP"
    UDP = "UDP"
    ICMP = "ICMP"


@dataclass(frozen=True)
class TCPFlags:
    """TCP flag decomposition."""
    syn: bool = False
    ack: bool = False
    fin: bool = False
    rst: bool = False
    psh: bool = False
    urg: bool = False
    ece: bool = False
    cwr: bool = False

    @classmethod
    def from_int(cls, flags: int) -> "TCPFlags":
        """Create TCPFlags from integer flag value."""
        return cls(
            fin=bool(flags & 0x01),
            syn=bool(flags & 0x02),
            rst=bool(flags & 0x04),
            psh=bool(flags & 0x08),
            ack=bool(flags & 0x10),
            urg=bool(flags & 0x20),
            ece=bool(flags & 0x40),
            cwr=bool(flags & 0x80),
        )


@dataclass(frozen=True)
class TransportHeader:
    """Decoded transport layer fields."""
    protocol: Protocol
    src_port: Optional[int] = None
    dst_port: Optional[int] = None
    payload_length: int = 0
    # TCP-specific fields
    tcp_flags: int = 0
    window_size: Optional[int] = None

    def get_tcp_flags(self) -> TCPFlags:
        """Get parsed TCP flags."""
        return TCPFlags.from_int(self.tcp_flags)

    def has_port(self, port: int) -> bool:
        """Check whether either endpoint uses the given port."""
        return self.src_port == port or self.dst_port == port


@dataclass(frozen=True)
class PacketEvent:
    """
    One observed packet, already decoded into header fields.

    src_ip/dst_ip are empty when the packet carried no IPv4 or IPv6 layer.
    """
    timestamp: float
    src_ip: str = ""
    dst_ip: str = ""
    link_src: Optional[str] = None
    transport: Optional[TransportHeader] = None
    payload: bytes = b""
    ttl: Optional[int] = None

    @property
    def has_network_layer(self) -> bool:
        """Check if packet carried a usable network-layer address pair."""
        return bool(self.src_ip) and bool(self.dst_ip)

    @property
    def protocol(self) -> Optional[Protocol]:
        return self.transport.protocol if self.transport else None

    def is_tcp(self) -> bool:
        """Check if packet is TCP."""
        return self.protocol == Protocol.TCP

    def is_icmp(self) -> bool:
        """Check if packet is ICMP."""
        return self.protocol == Protocol.ICMP
