"""
Passive OS fingerprinting.

Signals from four analyzers (TCP characteristics, HTTP User-Agent, SSH
banner, DHCP presence) are folded into one OSSignalState per source
address. How a signal affects the label and the confidence is decided by
SIGNAL_RULES, applied by a single reducer (``apply_signal``), so the
precedence HTTP > SSH > TCP/TTL > DHCP can be read off one table.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Union

from ..models.asset import UNKNOWN_OS


MAX_CONFIDENCE = 100.0
MIN_CONFIDENCE = 0.0

WINDOWS_WINDOW_SIZES = frozenset({8192, 64240, 65535})
LINUX_WINDOW_SIZES = frozenset({5840, 14600, 29200})

Payload = Union[bytes, str]


class SignalKind(Enum):
    """Kinds of fingerprint evidence."""
    TCP_WINDOW = "tcp_window"
    TTL = "ttl"
    HTTP_USER_AGENT = "http_ua"
    HTTP_USER_AGENT_VERSION = "http_ua_version"
    SSH_DISTRO = "ssh_distro"
    SSH_GENERIC = "ssh_generic"
    DHCP = "dhcp"


class EffectMode(Enum):
    SET = "set"
    ADD = "add"


@dataclass(frozen=True)
class ConfidenceEffect:
    """Change applied to a host's confidence score."""
    mode: EffectMode
    value: float

    def apply(self, confidence: float) -> float:
        if self.mode == EffectMode.SET:
            return self.value
        return confidence + self.value


def set_to(value: float) -> ConfidenceEffect:
    return ConfidenceEffect(EffectMode.SET, value)


def add(value: float) -> ConfidenceEffect:
    return ConfidenceEffect(EffectMode.ADD, value)


@dataclass(frozen=True)
class SignalRule:
    """
    How one kind of signal updates an OSSignalState.

    The effect is picked by the host's current label: still unknown,
    equal to the signal's OS, or some other OS. ``None`` means the signal
    changes nothing in that case. ``overwrites_label`` replaces any
    existing label; otherwise the signal's OS is only adopted while the
    label is unknown.
    """
    overwrites_label: bool
    if_unknown: Optional[ConfidenceEffect] = None
    if_matching: Optional[ConfidenceEffect] = None
    if_other: Optional[ConfidenceEffect] = None
    record_ignored: bool = True


SIGNAL_RULES: Dict[SignalKind, SignalRule] = {
    SignalKind.HTTP_USER_AGENT_VERSION: SignalRule(
        overwrites_label=True,
        if_unknown=set_to(95), if_matching=set_to(95), if_other=set_to(95),
    ),
    SignalKind.HTTP_USER_AGENT: SignalRule(
        overwrites_label=True,
        if_unknown=set_to(90), if_matching=set_to(90), if_other=set_to(90),
    ),
    SignalKind.SSH_DISTRO: SignalRule(
        overwrites_label=True,
        if_unknown=set_to(85), if_matching=set_to(85), if_other=set_to(85),
    ),
    SignalKind.SSH_GENERIC: SignalRule(
        overwrites_label=False,
        if_unknown=set_to(70),
        record_ignored=False,
    ),
    SignalKind.TCP_WINDOW: SignalRule(
        overwrites_label=False,
        if_unknown=set_to(40), if_matching=add(10),
    ),
    SignalKind.TTL: SignalRule(
        overwrites_label=False,
        if_unknown=add(5), if_matching=add(5),
    ),
    # DHCP carries no OS; it only nudges whatever is already inferred
    SignalKind.DHCP: SignalRule(
        overwrites_label=False,
        if_unknown=add(5), if_matching=add(5), if_other=add(5),
    ),
}


@dataclass(frozen=True)
class Signal:
    """One unit of fingerprint evidence."""
    kind: SignalKind
    tag: Optional[str]
    os_type: Optional[str] = None


@dataclass
class OSSignalState:
    """Running OS inference for one source address."""
    ip_address: str
    os_type: str = UNKNOWN_OS
    confidence: float = 0.0
    signals: List[str] = field(default_factory=list)


def clamp_confidence(value: float) -> float:
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, value))


def apply_signal(state: OSSignalState, signal: Signal) -> bool:
    """
    Fold one signal into a host state.

    Returns True if the signal changed the label or the confidence.
    """
    rule = SIGNAL_RULES[signal.kind]

    if state.os_type == UNKNOWN_OS:
        effect = rule.if_unknown
    elif signal.os_type is not None and state.os_type == signal.os_type:
        effect = rule.if_matching
    else:
        effect = rule.if_other

    if effect is None:
        if rule.record_ignored and signal.tag:
            state.signals.append(signal.tag)
        return False

    if signal.tag:
        state.signals.append(signal.tag)
    if signal.os_type is not None and (
        rule.overwrites_label or state.os_type == UNKNOWN_OS
    ):
        state.os_type = signal.os_type
    state.confidence = clamp_confidence(effect.apply(state.confidence))
    return True


def _as_text(payload: Payload) -> str:
    if isinstance(payload, bytes):
        return payload.decode("latin-1")
    return payload


def tcp_signals(window_size: Optional[int], ttl: Optional[int]) -> List[Signal]:
    """Signals carried by TCP window size and IP TTL, window first."""
    signals = []

    if window_size in WINDOWS_WINDOW_SIZES:
        signals.append(Signal(SignalKind.TCP_WINDOW, "tcp_window_windows", "Windows"))
    elif window_size in LINUX_WINDOW_SIZES:
        signals.append(Signal(SignalKind.TCP_WINDOW, "tcp_window_linux", "Linux"))

    if ttl is not None:
        if 32 < ttl <= 64:
            signals.append(Signal(SignalKind.TTL, "ttl_linux", "Linux"))
        elif 64 < ttl <= 128:
            signals.append(Signal(SignalKind.TTL, "ttl_windows", "Windows"))

    return signals


WINDOWS_VERSIONS = (
    ("windows nt 10.0", "Windows 10/11"),
    ("windows nt 6.3", "Windows 8.1"),
    ("windows nt 6.2", "Windows 8"),
    ("windows nt 6.1", "Windows 7"),
)

LINUX_DISTROS = (
    ("ubuntu", "Linux (Ubuntu)"),
    ("fedora", "Linux (Fedora)"),
    ("debian", "Linux (Debian)"),
)


USER_AGENT_MARKER = "User-Agent:"


def has_user_agent(payload: Payload) -> bool:
    """Check for a User-Agent header; the header name is matched exactly."""
    return USER_AGENT_MARKER in _as_text(payload)


def _first_match(text: str, table) -> Optional[str]:
    for needle, label in table:
        if needle in text:
            return label
    return None


def http_signals(text: str) -> List[Signal]:
    """
    Signals carried by an HTTP payload.

    The vocabulary is matched against the whole lowercased payload, not
    only the User-Agent value. Families are checked in a fixed order and
    each match overwrites the previous one, so "Android ... Linux" ends as
    Android and "iPhone ... Mac OS X" ends as iOS. Version and distro
    refinements carry no tag of their own.
    """
    ua = text.lower()
    signals = []

    if "windows nt" in ua or "win64" in ua or "wow64" in ua:
        signals.append(Signal(SignalKind.HTTP_USER_AGENT, "http_ua_windows", "Windows"))
        version = _first_match(ua, WINDOWS_VERSIONS)
        if version:
            signals.append(Signal(SignalKind.HTTP_USER_AGENT_VERSION, None, version))

    if "linux" in ua and "android" not in ua:
        signals.append(Signal(SignalKind.HTTP_USER_AGENT, "http_ua_linux", "Linux"))
        distro = _first_match(ua, LINUX_DISTROS)
        if distro:
            signals.append(Signal(SignalKind.HTTP_USER_AGENT_VERSION, None, distro))

    if "macintosh" in ua or "mac os x" in ua:
        signals.append(Signal(SignalKind.HTTP_USER_AGENT, "http_ua_macos", "macOS"))

    if "android" in ua:
        signals.append(Signal(SignalKind.HTTP_USER_AGENT, "http_ua_android", "Android"))

    if "iphone" in ua or "ipad" in ua:
        signals.append(Signal(SignalKind.HTTP_USER_AGENT, "http_ua_ios", "iOS"))

    return signals


def ssh_signals(banner: str) -> List[Signal]:
    """Signals carried by an SSH identification banner."""
    if not banner.startswith("SSH-"):
        return []

    text = banner.lower()
    signals = []
    if "ubuntu" in text:
        signals.append(Signal(SignalKind.SSH_DISTRO, "ssh_ubuntu", "Linux (Ubuntu)"))
    if "debian" in text:
        signals.append(Signal(SignalKind.SSH_DISTRO, "ssh_debian", "Linux (Debian)"))
    if "openssh" in text:
        signals.append(Signal(SignalKind.SSH_GENERIC, "ssh_linux", "Linux"))
    return signals


class OSFingerprinter:
    """
    Per-job fingerprint engine.

    Holds one OSSignalState per source address. Not shared between jobs,
    so no locking is done.
    """

    def __init__(self):
        self._states: Dict[str, OSSignalState] = {}

    def _state(self, src_ip: str) -> OSSignalState:
        state = self._states.get(src_ip)
        if state is None:
            state = OSSignalState(ip_address=src_ip)
            self._states[src_ip] = state
        return state

    def _apply(self, src_ip: str, signals: Iterable[Signal]) -> OSSignalState:
        state = self._state(src_ip)
        for signal in signals:
            apply_signal(state, signal)
        return state

    def analyze_tcp(
        self, src_ip: str, window_size: Optional[int], ttl: Optional[int]
    ) -> OSSignalState:
        """Analyze TCP window size and IP TTL."""
        return self._apply(src_ip, tcp_signals(window_size, ttl))

    def analyze_http(self, src_ip: str, payload: Payload) -> OSSignalState:
        """Analyze an HTTP payload carrying a User-Agent header."""
        state = self._state(src_ip)
        if not has_user_agent(payload):
            return state
        return self._apply(src_ip, http_signals(_as_text(payload)))

    def analyze_ssh(self, src_ip: str, payload: Payload) -> OSSignalState:
        """Analyze an SSH identification banner."""
        return self._apply(src_ip, ssh_signals(_as_text(payload)))

    def analyze_dhcp(self, src_ip: str, payload: Payload) -> OSSignalState:
        """Record DHCP traffic as a weak signal."""
        signals = [Signal(SignalKind.DHCP, "dhcp_seen")] if len(payload) > 0 else []
        return self._apply(src_ip, signals)

    def get_state(self, src_ip: str) -> Optional[OSSignalState]:
        return self._states.get(src_ip)

    def get_results(self) -> Dict[str, OSSignalState]:
        """Final per-host results with confidence capped at 100."""
        for state in self._states.values():
            state.confidence = clamp_confidence(state.confidence)
        return dict(self._states)
