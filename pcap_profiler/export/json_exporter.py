"""JSON export functionality."""

import json
from datetime import datetime
from typing import Any, Dict, Optional
from pathlib import Path

from ..models.job import AnalysisResults


def results_to_dict(results: AnalysisResults) -> Dict[str, Any]:
    """Flatten analysis results into JSON-serializable data."""
    return {
        "analysis": {
            "id": results.job_id,
            "status": results.status.value,
            "error_msg": results.error_msg,
        },
        "asset_count": results.asset_count,
        "target_count": results.target_count,
        "public_targets": results.public_targets,
        "local_targets": results.local_targets,
        "assets": [a.to_dict() for a in results.assets],
        "targets": [t.to_dict() for t in results.targets],
        "tcp_connections": [c.to_dict() for c in results.tcp_connections],
        "other_connections": [c.to_dict() for c in results.other_connections],
    }


class JSONExporter:
    """Export analysis results to JSON format."""

    def __init__(self, output_dir: str = "./reports"):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def export_results(
        self,
        results: AnalysisResults,
        filename: Optional[str] = None
    ) -> str:
        """Export one analysis to JSON."""
        if filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            filename = f"analysis_{results.job_id}_{timestamp}.json"

        data = {"export_time": datetime.now().isoformat()}
        data.update(results_to_dict(results))

        filepath = self.output_dir / filename
        with open(filepath, 'w') as f:
            json.dump(data, f, indent=2)

        return str(filepath)
