"""CSV export functionality."""

import csv
from datetime import datetime
from typing import Optional
from pathlib import Path

from ..models.job import AnalysisResults


CONNECTION_COLUMNS = [
    "protocol",
    "src_ip",
    "src_port",
    "dst_ip",
    "dst_port",
    "service",
    "bytes_sent",
    "bytes_received",
    "duration_ms",
    "start_time",
    "end_time",
]


class CSVExporter:
    """Export analysis results to CSV format for spreadsheet analysis."""

    def __init__(self, output_dir: str = "./reports"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def _default_name(self, kind: str, results: AnalysisResults) -> str:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        return f"{kind}_{results.job_id}_{timestamp}.csv"

    def export_connections(
        self,
        results: AnalysisResults,
        filename: Optional[str] = None
    ) -> str:
        """Export TCP and other connections, one row per connection."""
        filepath = self.output_dir / (filename or self._default_name("connections", results))

        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(CONNECTION_COLUMNS)

            for conn in results.tcp_connections + results.other_connections:
                writer.writerow([
                    conn.protocol,
                    conn.src_ip,
                    "" if conn.src_port is None else conn.src_port,
                    conn.dst_ip,
                    "" if conn.dst_port is None else conn.dst_port,
                    conn.service,
                    conn.bytes_sent,
                    conn.bytes_received,
                    conn.duration_ms,
                    conn.start_time_iso,
                    conn.end_time_iso,
                ])

        return str(filepath)

    def export_assets(
        self,
        results: AnalysisResults,
        filename: Optional[str] = None
    ) -> str:
        """Export assets with their OS fingerprint."""
        filepath = self.output_dir / (filename or self._default_name("assets", results))

        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(["ip_address", "mac_address", "os_type", "os_confidence"])
            for asset in results.assets:
                writer.writerow([
                    asset.ip_address,
                    asset.mac_address or "",
                    asset.os_type,
                    f"{asset.os_confidence:.0f}",
                ])

        return str(filepath)

    def export_targets(
        self,
        results: AnalysisResults,
        filename: Optional[str] = None
    ) -> str:
        """Export destination addresses with their public/local label."""
        filepath = self.output_dir / (filename or self._default_name("targets", results))

        with open(filepath, 'w', newline='') as f:
            writer = csv.writer(f)
            writer.writerow(["ip_address", "label"])
            for target in results.targets:
                writer.writerow([target.ip_address, target.label.value])

        return str(filepath)
