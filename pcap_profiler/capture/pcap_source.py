"""Trace-file packet source using Scapy."""

import logging
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from scapy.all import conf, Ether, IP, IPv6, TCP, UDP, ICMP
from scapy.error import Scapy_Exception
from scapy.packet import Packet, Padding
from scapy.utils import PcapReader

from ..errors import SourceOpenError, SourceReadError
from ..models.packet import PacketEvent, Protocol, TransportHeader


logger = logging.getLogger(__name__)

conf.verb = 0


def _app_payload(layer: Packet) -> bytes:
    """Application bytes carried above a transport layer, without padding."""
    data = bytes(layer.payload)
    padding = layer.getlayer(Padding)
    if padding is not None:
        data = data[: len(data) - len(bytes(padding))]
    return data


def parse_packet(pkt: Packet) -> PacketEvent:
    """
    Convert a Scapy packet into a PacketEvent.

    Packets without an IPv4 or IPv6 layer yield an event with empty
    addresses; the analyzer skips those.
    """
    timestamp = float(pkt.time)

    link_src = pkt[Ether].src if pkt.haslayer(Ether) else None

    ttl = None
    if pkt.haslayer(IP):
        ip_layer = pkt[IP]
        src_ip, dst_ip = ip_layer.src, ip_layer.dst
        ttl = ip_layer.ttl
    elif pkt.haslayer(IPv6):
        ip_layer = pkt[IPv6]
        src_ip, dst_ip = ip_layer.src, ip_layer.dst
    else:
        return PacketEvent(timestamp=timestamp, link_src=link_src)

    transport = None
    payload = b""

    if pkt.haslayer(TCP):
        tcp = pkt[TCP]
        payload = _app_payload(tcp)
        transport = TransportHeader(
            protocol=Protocol.TCP,
            src_port=tcp.sport,
            dst_port=tcp.dport,
            payload_length=len(payload),
            tcp_flags=int(tcp.flags),
            window_size=tcp.window,
        )

    elif pkt.haslayer(UDP):
        udp = pkt[UDP]
        payload = _app_payload(udp)
        transport = TransportHeader(
            protocol=Protocol.UDP,
            src_port=udp.sport,
            dst_port=udp.dport,
            payload_length=len(payload),
        )

    elif pkt.haslayer(ICMP):
        transport = TransportHeader(protocol=Protocol.ICMP)

    return PacketEvent(
        timestamp=timestamp,
        src_ip=src_ip,
        dst_ip=dst_ip,
        link_src=link_src,
        transport=transport,
        payload=payload,
        ttl=ttl,
    )


class PcapPacketSource:
    """
    Lazily decodes a .pcap or .pcapng file into PacketEvents.

    The file is opened by ``open()`` (or by calling the source), so that
    open failures are raised inside the analysis job rather than at
    submission time.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def open(self) -> Iterator[PacketEvent]:
        """
        Open the trace and return an iterator over its packets.

        Raises:
            SourceOpenError: if the file is missing or not a capture file
        """
        try:
            reader = PcapReader(str(self.path))
        except (OSError, Scapy_Exception) as e:
            raise SourceOpenError(f"failed to open pcap file {self.path}: {e}") from e

        logger.debug("Opened trace %s", self.path)
        return self._iterate(reader)

    def _iterate(self, reader: PcapReader) -> Iterator[PacketEvent]:
        try:
            while True:
                try:
                    pkt = reader.read_packet()
                except EOFError:
                    return
                except (OSError, Scapy_Exception) as e:
                    raise SourceReadError(f"failed to read {self.path}: {e}") from e
                yield parse_packet(pkt)
        finally:
            reader.close()

    __call__ = open

    def __repr__(self) -> str:
        return f"PcapPacketSource({str(self.path)!r})"


def open_source(source: Any) -> Iterator[PacketEvent]:
    """
    Open any supported packet source.

    Accepts an object with ``open()``, a zero-argument callable returning
    an iterable, a plain iterable of PacketEvent, or a trace file path.
    """
    if isinstance(source, (str, Path)):
        source = PcapPacketSource(source)

    opener = getattr(source, "open", None)
    if callable(opener):
        events: Optional[Iterable[PacketEvent]] = opener()
    elif callable(source):
        events = source()
    else:
        events = source

    if events is None:
        raise SourceOpenError(f"packet source {source!r} produced nothing")
    try:
        return iter(events)
    except TypeError as e:
        raise SourceOpenError(f"packet source {source!r} is not iterable") from e
