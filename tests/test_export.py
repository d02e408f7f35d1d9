import csv
import json

import pytest

from pcap_profiler.export.csv_exporter import CONNECTION_COLUMNS, CSVExporter
from pcap_profiler.export.json_exporter import JSONExporter
from pcap_profiler.models.asset import AssetInfo, TargetInfo, TargetLabel
from pcap_profiler.models.flow import ConnectionRecord
from pcap_profiler.models.job import AnalysisResults, JobStatus


@pytest.fixture()
def results():
    return AnalysisResults(
        job_id=7,
        status=JobStatus.COMPLETED,
        assets=[AssetInfo("10.0.0.5", "aa:bb:cc:00:00:05", "Windows", 45.0)],
        targets=[
            TargetInfo("93.184.216.34", TargetLabel.PUBLIC),
            TargetInfo("10.0.0.1", TargetLabel.LOCAL),
        ],
        tcp_connections=[ConnectionRecord(
            "TCP", "10.0.0.5", "93.184.216.34", 51000, 443, 160, 800, 100, "https", 0.0, 0.1,
        )],
        other_connections=[ConnectionRecord(
            "ICMP", "10.0.0.5", "8.8.8.8", None, None, 8, 0, 0, "icmp", 1.0, 1.0,
        )],
    )


def test_json_export(tmp_path, results):
    path = JSONExporter(str(tmp_path)).export_results(results, "out.json")

    with open(path) as f:
        data = json.load(f)
    assert data["analysis"] == {"id": 7, "status": "completed", "error_msg": ""}
    assert data["public_targets"] == 1
    assert data["local_targets"] == 1
    assert data["tcp_connections"][0]["service"] == "https"
    assert data["other_connections"][0]["src_port"] is None
    assert data["tcp_connections"][0]["start_time"] == "1970-01-01T00:00:00+00:00"


def test_json_default_filename(tmp_path, results):
    path = JSONExporter(str(tmp_path)).export_results(results)
    assert path.endswith(".json")
    assert "analysis_7_" in path


def test_csv_connections(tmp_path, results):
    path = CSVExporter(str(tmp_path)).export_connections(results, "conn.csv")

    with open(path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert list(rows[0].keys()) == CONNECTION_COLUMNS
    assert [r["protocol"] for r in rows] == ["TCP", "ICMP"]
    assert rows[1]["src_port"] == ""
    assert rows[0]["bytes_received"] == "800"


def test_csv_assets_and_targets(tmp_path, results):
    exporter = CSVExporter(str(tmp_path))

    with open(exporter.export_assets(results, "assets.csv"), newline="") as f:
        assets = list(csv.DictReader(f))
    assert assets == [{
        "ip_address": "10.0.0.5",
        "mac_address": "aa:bb:cc:00:00:05",
        "os_type": "Windows",
        "os_confidence": "45",
    }]

    with open(exporter.export_targets(results, "targets.csv"), newline="") as f:
        labels = {r["ip_address"]: r["label"] for r in csv.DictReader(f)}
    assert labels == {"93.184.216.34": "public", "10.0.0.1": "local"}
