"""Per-host inventory models."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


UNKNOWN_OS = "Unknown"


class TargetLabel(Enum):
    """Destination address classification."""
    PUBLIC = "public"
    LOCAL = "local"


@dataclass
class AssetInfo:
    """A distinct source address observed in a trace."""
    ip_address: str
    mac_address: Optional[str] = None
    os_type: str = UNKNOWN_OS
    os_confidence: float = 0.0

    def to_dict(self) -> dict:
        return {
            "ip_address": self.ip_address,
            "mac_address": self.mac_address,
            "os_type": self.os_type,
            "os_confidence": self.os_confidence,
        }


@dataclass(frozen=True)
class TargetInfo:
    """A distinct destination address with its public/local label."""
    ip_address: str
    label: TargetLabel

    @property
    def is_public(self) -> bool:
        return self.label == TargetLabel.PUBLIC

    def to_dict(self) -> dict:
        return {"ip_address": self.ip_address, "label": self.label.value}
