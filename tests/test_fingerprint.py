from pcap_profiler.models.asset import UNKNOWN_OS
from pcap_profiler.processing.fingerprint import (
    OSFingerprinter,
    OSSignalState,
    Signal,
    SignalKind,
    apply_signal,
    has_user_agent,
    http_signals,
    tcp_signals,
)

WINDOWS_UA = b"GET / HTTP/1.1\r\nHost: example.com\r\nUser-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64)\r\n\r\n"


def test_tcp_window_sets_then_increments():
    fp = OSFingerprinter()
    fp.analyze_tcp("10.0.0.5", 64240, None)
    assert fp.get_state("10.0.0.5").os_type == "Windows"
    assert fp.get_state("10.0.0.5").confidence == 40

    fp.analyze_tcp("10.0.0.5", 64240, None)
    assert fp.get_state("10.0.0.5").confidence == 50


def test_ttl_alone_adopts_its_os():
    fp = OSFingerprinter()
    state = fp.analyze_tcp("10.0.0.5", None, 64)
    assert state.os_type == "Linux"
    assert state.confidence == 5


def test_conflicting_tcp_evidence_does_not_flap():
    fp = OSFingerprinter()
    fp.analyze_tcp("10.0.0.5", 29200, 64)
    fp.analyze_tcp("10.0.0.5", 65535, 128)
    fp.analyze_tcp("10.0.0.5", 8192, 128)

    state = fp.get_state("10.0.0.5")
    assert state.os_type == "Linux"
    assert state.confidence == 45
    assert "tcp_window_windows" in state.signals


def test_confidence_stays_within_bounds():
    fp = OSFingerprinter()
    for _ in range(50):
        fp.analyze_tcp("10.0.0.5", 64240, 128)
        fp.analyze_dhcp("10.0.0.5", b"\x01")

    confidence = fp.get_results()["10.0.0.5"].confidence
    assert 0 <= confidence <= 100
    assert confidence == 100


def test_http_user_agent_overwrites_weaker_label():
    fp = OSFingerprinter()
    fp.analyze_tcp("192.168.1.10", 29200, 64)
    state = fp.analyze_http("192.168.1.10", WINDOWS_UA)

    assert state.os_type == "Windows 10/11"
    assert state.confidence == 95


def test_user_agent_header_name_must_match_exactly():
    assert has_user_agent(b"GET / HTTP/1.1\r\nUser-Agent: curl/8.4.0\r\n\r\n")
    assert not has_user_agent(b"HTTP/1.1 200 OK\r\nServer: nginx\r\n\r\n")

    fp = OSFingerprinter()
    state = fp.analyze_http("10.0.0.5", b"GET / HTTP/1.1\r\nuser-agent: Mozilla/5.0 (Windows NT 10.0)\r\n\r\n")
    assert state.os_type == UNKNOWN_OS
    assert state.confidence == 0


def test_vocabulary_matches_anywhere_in_payload():
    fp = OSFingerprinter()
    payload = b"GET /linux HTTP/1.1\r\nHost: ubuntu.com\r\nUser-Agent: curl/8.0\r\n\r\n"
    state = fp.analyze_http("10.0.0.5", payload)
    assert state.os_type == "Linux (Ubuntu)"
    assert state.confidence == 95


def test_refinements_add_no_signal_tags():
    fp = OSFingerprinter()
    state = fp.analyze_http("192.168.1.10", WINDOWS_UA)
    assert state.os_type == "Windows 10/11"
    assert state.signals == ["http_ua_windows"]

    state = fp.analyze_http("10.0.0.8", b"User-Agent: Mozilla/5.0 (X11; Debian; Linux x86_64)\r\n")
    assert state.os_type == "Linux (Debian)"
    assert state.signals == ["http_ua_linux"]


def test_payload_without_user_agent_leaves_state_alone():
    fp = OSFingerprinter()
    state = fp.analyze_http("10.0.0.5", b"HTTP/1.1 200 OK\r\n\r\n")
    assert state.os_type == UNKNOWN_OS
    assert state.signals == []


def test_android_is_not_labeled_linux():
    fp = OSFingerprinter()
    state = fp.analyze_http("10.0.0.7", b"User-Agent: Mozilla/5.0 (Linux; Android 13; Pixel 7)\r\n")
    assert state.os_type == "Android"
    assert state.confidence == 90


def test_iphone_wins_over_mac_os_x():
    signals = http_signals("Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X)")
    assert [s.os_type for s in signals] == ["macOS", "iOS"]


def test_linux_distro_from_user_agent():
    fp = OSFingerprinter()
    state = fp.analyze_http("10.0.0.8", b"User-Agent: Mozilla/5.0 (X11; Ubuntu; Linux x86_64)\r\n")
    assert state.os_type == "Linux (Ubuntu)"
    assert state.confidence == 95


def test_ssh_distro_banner():
    fp = OSFingerprinter()
    state = fp.analyze_ssh("10.0.0.9", b"SSH-2.0-OpenSSH_8.9p1 Ubuntu-3ubuntu0.4\r\n")
    assert state.os_type == "Linux (Ubuntu)"
    assert state.confidence == 85


def test_generic_ssh_only_applies_to_unknown_hosts():
    fp = OSFingerprinter()
    fp.analyze_ssh("10.0.0.9", b"SSH-2.0-OpenSSH_9.3\r\n")
    assert fp.get_state("10.0.0.9").os_type == "Linux"
    assert fp.get_state("10.0.0.9").confidence == 70

    fp.analyze_tcp("10.0.0.10", 64240, None)
    state = fp.analyze_ssh("10.0.0.10", b"SSH-2.0-OpenSSH_for_Windows_8.1\r\n")
    assert state.os_type == "Windows"
    assert state.confidence == 40
    assert "ssh_linux" not in state.signals


def test_non_ssh_payload_is_ignored():
    fp = OSFingerprinter()
    state = fp.analyze_ssh("10.0.0.9", b"\x00\x00\x01\x0c\x0a\x14")
    assert state.os_type == UNKNOWN_OS
    assert state.confidence == 0


def test_dhcp_only_nudges_confidence():
    fp = OSFingerprinter()
    fp.analyze_tcp("10.0.0.5", 5840, None)
    state = fp.analyze_dhcp("10.0.0.5", b"\x01\x01\x06\x00")
    assert state.os_type == "Linux"
    assert state.confidence == 45
    assert state.signals[-1] == "dhcp_seen"

    assert fp.analyze_dhcp("10.0.0.6", b"").confidence == 0


def test_reducer_reports_whether_state_changed():
    state = OSSignalState(ip_address="10.0.0.5")
    assert apply_signal(state, Signal(SignalKind.TCP_WINDOW, "tcp_window_linux", "Linux")) is True
    assert apply_signal(state, Signal(SignalKind.TCP_WINDOW, "tcp_window_windows", "Windows")) is False
    assert state.os_type == "Linux"


def test_tcp_signals_order():
    kinds = [s.kind for s in tcp_signals(65535, 128)]
    assert kinds == [SignalKind.TCP_WINDOW, SignalKind.TTL]
    assert tcp_signals(1024, 255) == []
