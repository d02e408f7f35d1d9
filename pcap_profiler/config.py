"""Configuration management for pcap profiler."""

from dataclasses import dataclass, field
from typing import List, Optional, Dict, Any
from pathlib import Path
import os

import yaml


@dataclass
class WorkerConfig:
    """Job scheduling configuration."""
    count: int = 2
    queue_size: int = 100
    poll_interval: float = 0.2  # seconds


@dataclass
class StorageConfig:
    """Result storage configuration."""
    database_url: str = "sqlite:///pcap-profiler.db"
    echo: bool = False


@dataclass
class ExportConfig:
    """Export configuration."""
    output_dir: str = "./reports"
    formats: List[str] = field(default_factory=lambda: ["json"])  # json, csv


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"


@dataclass
class ProfilerConfig:
    """Main configuration container."""
    workers: WorkerConfig = field(default_factory=WorkerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProfilerConfig":
        """Create config from dictionary."""
        config = cls()

        if "workers" in data:
            w = data["workers"] or {}
            config.workers = WorkerConfig(
                count=int(w.get("count", 2)),
                queue_size=int(w.get("queue_size", 100)),
                poll_interval=float(w.get("poll_interval", 0.2)),
            )

        if "storage" in data:
            s = data["storage"] or {}
            config.storage = StorageConfig(
                database_url=s.get("database_url", "sqlite:///pcap-profiler.db"),
                echo=bool(s.get("echo", False)),
            )

        if "export" in data:
            exp = data["export"] or {}
            formats = exp.get("formats", ["json"])
            if isinstance(formats, str):
                formats = [f.strip() for f in formats.split(",") if f.strip()]
            config.export = ExportConfig(
                output_dir=exp.get("output_dir", "./reports"),
                formats=list(formats),
            )

        if "logging" in data:
            log = data["logging"] or {}
            config.logging = LoggingConfig(level=str(log.get("level", "INFO")).upper())

        config.validate()
        return config

    def validate(self) -> None:
        """Reject values the worker pool or exporters cannot run with."""
        if self.workers.count < 1:
            raise ValueError("workers.count must be at least 1")
        if self.workers.queue_size < 1:
            raise ValueError("workers.queue_size must be at least 1")
        unknown = set(self.export.formats) - {"json", "csv"}
        if unknown:
            raise ValueError(f"unsupported export formats: {', '.join(sorted(unknown))}")

    @classmethod
    def from_yaml(cls, path: str) -> "ProfilerConfig":
        """Load config from YAML file."""
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def load(cls, path: Optional[str] = None) -> "ProfilerConfig":
        """Load config from file or use defaults."""
        if path and not os.path.exists(path):
            raise FileNotFoundError(f"config file not found: {path}")

        # Search paths
        search_paths = [
            path,
            "config.yaml",
            "config.yml",
            os.path.expanduser("~/.config/pcap-profiler/config.yaml"),
            "/etc/pcap-profiler/config.yaml",
        ]

        for config_path in search_paths:
            if config_path and os.path.exists(config_path):
                return cls.from_yaml(config_path)

        # Return defaults
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return {
            "workers": {
                "count": self.workers.count,
                "queue_size": self.workers.queue_size,
                "poll_interval": self.workers.poll_interval,
            },
            "storage": {
                "database_url": self.storage.database_url,
                "echo": self.storage.echo,
            },
            "export": {
                "output_dir": self.export.output_dir,
                "formats": list(self.export.formats),
            },
            "logging": {
                "level": self.logging.level,
            },
        }

    def save_yaml(self, path: str) -> None:
        """Save config to YAML file."""
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)
