"""Packet sources: decoded trace-file readers."""

from .pcap_source import PcapPacketSource, parse_packet, open_source

__all__ = [
    "PcapPacketSource",
    "parse_packet",
    "open_source",
]
