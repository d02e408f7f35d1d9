import pytest

from pcap_profiler.models.flow import FlowKey, duration_ms
from pcap_profiler.processing.flow_tracker import ICMPTracker, TCPFlowTracker, UDPFlowTracker


def test_flow_key_is_symmetric():
    forward = FlowKey.bidirectional("10.0.0.5", 51000, "93.184.216.34", 443, "TCP")
    reverse = FlowKey.bidirectional("93.184.216.34", 443, "10.0.0.5", 51000, "TCP")
    assert forward == reverse
    assert hash(forward) == hash(reverse)


def test_directed_key_keeps_direction():
    assert FlowKey.directed("10.0.0.1", "10.0.0.2", "ICMP") != FlowKey.directed("10.0.0.2", "10.0.0.1", "ICMP")


def test_bytes_attributed_to_first_seen_direction(tcp_event):
    tracker = TCPFlowTracker()
    tracker.observe(tcp_event("10.0.0.5", 51000, "93.184.216.34", 443, b"a" * 100, ts=1.0))
    tracker.observe(tcp_event("93.184.216.34", 443, "10.0.0.5", 51000, b"b" * 300, ts=1.2))
    tracker.observe(tcp_event("10.0.0.5", 51000, "93.184.216.34", 443, b"c" * 50, ts=1.5))

    records = tracker.finalize()
    assert len(records) == 1
    record = records[0]
    assert record.src_ip == "10.0.0.5"
    assert record.src_port == 51000
    assert record.bytes_sent == 150
    assert record.bytes_received == 300
    assert record.total_bytes == 450
    assert record.service == "https"
    assert record.duration_ms == 500


def test_duration_truncates_to_whole_milliseconds():
    assert duration_ms(1.0, 1.0015) == 1
    assert duration_ms(1.0, 1.0009) == 0
    assert duration_ms(2.0, 1.0) == 0


def test_out_of_order_timestamps_never_shrink_flow(tcp_event):
    tracker = TCPFlowTracker()
    tracker.observe(tcp_event("10.0.0.5", 40000, "10.0.0.9", 22, ts=5.0))
    tracker.observe(tcp_event("10.0.0.9", 22, "10.0.0.5", 40000, ts=3.0))

    record = tracker.finalize()[0]
    assert record.end_time == 5.0
    assert record.duration_ms == 0


def test_fin_and_rst_do_not_split_flow(tcp_event):
    tracker = TCPFlowTracker()
    tracker.observe(tcp_event("10.0.0.5", 40000, "10.0.0.9", 80, flags=0x02, ts=1.0))
    tracker.observe(tcp_event("10.0.0.5", 40000, "10.0.0.9", 80, flags=0x11, ts=2.0))
    tracker.observe(tcp_event("10.0.0.5", 40000, "10.0.0.9", 80, flags=0x02, ts=3.0))
    tracker.observe(tcp_event("10.0.0.9", 80, "10.0.0.5", 40000, flags=0x04, ts=4.0))

    assert tracker.get_flow_count() == 1
    flow = tracker.get_all_flows()[0]
    assert flow.syn_seen and flow.fin_seen and flow.rst_seen
    assert flow.packets == 4


def test_tracker_rejects_other_protocols(udp_event):
    with pytest.raises(ValueError):
        TCPFlowTracker().observe(udp_event("10.0.0.5", 5353, "224.0.0.251", 5353))


def test_udp_service_falls_back_to_source_port(udp_event):
    tracker = UDPFlowTracker()
    tracker.observe(udp_event("8.8.8.8", 53, "10.0.0.5", 40000, b"x" * 60))

    record = tracker.finalize()[0]
    assert record.service == "dns"
    assert record.src_ip == "8.8.8.8"
    assert record.bytes_sent == 60


def test_udp_unknown_ports(udp_event):
    tracker = UDPFlowTracker()
    tracker.observe(udp_event("10.0.0.5", 40000, "10.0.0.6", 40001))
    assert tracker.finalize()[0].service == "unknown"


def test_icmp_is_directed_and_counts_fixed_unit():
    tracker = ICMPTracker()
    tracker.observe("10.0.0.1", "10.0.0.2", 1.0)
    flow = tracker.observe("10.0.0.1", "10.0.0.2", 2.0)
    tracker.observe("10.0.0.2", "10.0.0.1", 1.5)

    assert flow.messages == 2

    records = {(r.src_ip, r.dst_ip): r for r in tracker.finalize()}
    assert tracker.get_flow_count() == 2

    out = records[("10.0.0.1", "10.0.0.2")]
    assert out.bytes_sent == 16
    assert out.bytes_received == 0
    assert out.src_port is None and out.dst_port is None
    assert out.service == "icmp"
    assert out.duration_ms == 1000

    assert records[("10.0.0.2", "10.0.0.1")].bytes_sent == 8


def test_connection_record_timestamps_are_rfc3339(tcp_event):
    tracker = TCPFlowTracker()
    tracker.observe(tcp_event("10.0.0.5", 40000, "10.0.0.9", 80, ts=0.0))
    record = tracker.finalize()[0]
    assert record.start_time_iso == "1970-01-01T00:00:00+00:00"
    assert record.to_dict()["end_time"] == "1970-01-01T00:00:00+00:00"
