"""Shared fixtures for pcap profiler tests."""

import pytest

from pcap_profiler.models.packet import PacketEvent, Protocol, TransportHeader
from pcap_profiler.storage.sink import MemorySink


@pytest.fixture()
def tcp_event():
    def make(src, sport, dst, dport, payload=b"", ts=1.0, flags=0x18, window=None, ttl=None, mac=None):
        return PacketEvent(
            timestamp=ts,
            src_ip=src,
            dst_ip=dst,
            link_src=mac,
            transport=TransportHeader(
                protocol=Protocol.TCP,
                src_port=sport,
                dst_port=dport,
                payload_length=len(payload),
                tcp_flags=flags,
                window_size=window,
            ),
            payload=payload,
            ttl=ttl,
        )
    return make


@pytest.fixture()
def udp_event():
    def make(src, sport, dst, dport, payload=b"", ts=1.0):
        return PacketEvent(
            timestamp=ts,
            src_ip=src,
            dst_ip=dst,
            transport=TransportHeader(
                protocol=Protocol.UDP,
                src_port=sport,
                dst_port=dport,
                payload_length=len(payload),
            ),
            payload=payload,
        )
    return make


@pytest.fixture()
def icmp_event():
    def make(src, dst, ts=1.0):
        return PacketEvent(
            timestamp=ts,
            src_ip=src,
            dst_ip=dst,
            transport=TransportHeader(protocol=Protocol.ICMP),
        )
    return make


@pytest.fixture()
def memory_sink() -> MemorySink:
    return MemorySink()
