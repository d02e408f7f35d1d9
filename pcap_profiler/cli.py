"""Command-line interface for pcap profiler."""

import argparse
import sys
from pathlib import Path
from typing import Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text
from rich import box

from . import __version__
from .config import ProfilerConfig
from .logging_config import setup_logging
from .capture.pcap_source import PcapPacketSource
from .export.csv_exporter import CSVExporter
from .export.json_exporter import JSONExporter
from .models.job import AnalysisResults, JobStatus
from .processing.analyzer import TraceAnalyzer
from .processing.worker_pool import JobQueue, WorkerPool
from .storage.sql_sink import SQLSink


console = Console()

TRACE_SUFFIXES = (".pcap", ".pcapng", ".cap")


def _format_bytes(count: int) -> str:
    size = float(count)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return f"{count} B"


def get_assets_table(results: AnalysisResults) -> Table:
    """Create Rich table of assets and OS fingerprints."""
    table = Table(title="Assets", box=box.ROUNDED, header_style="bold cyan")
    table.add_column("IP Address", style="bold")
    table.add_column("MAC Address")
    table.add_column("OS")
    table.add_column("Confidence", justify="right")

    for asset in sorted(results.assets, key=lambda a: a.ip_address):
        confidence = asset.os_confidence
        if confidence >= 80:
            style = "green"
        elif confidence >= 40:
            style = "yellow"
        else:
            style = "dim"
        table.add_row(
            asset.ip_address,
            asset.mac_address or "-",
            asset.os_type,
            Text(f"{confidence:.0f}%", style=style),
        )
    return table


def get_targets_table(results: AnalysisResults) -> Table:
    """Create Rich table of destination addresses."""
    table = Table(
        title=f"Targets ({results.public_targets} public, {results.local_targets} local)",
        box=box.ROUNDED,
        header_style="bold cyan",
    )
    table.add_column("IP Address", style="bold")
    table.add_column("Label")

    for target in sorted(results.targets, key=lambda t: t.ip_address):
        style = "magenta" if target.is_public else "green"
        table.add_row(target.ip_address, Text(target.label.value, style=style))
    return table


def get_connections_table(results: AnalysisResults, limit: int = 20) -> Table:
    """Create Rich table of the largest connections."""
    connections = sorted(
        results.tcp_connections + results.other_connections,
        key=lambda c: c.total_bytes,
        reverse=True,
    )
    table = Table(
        title=f"Top Connections ({len(connections)} total)",
        box=box.ROUNDED,
        header_style="bold cyan",
    )
    table.add_column("Proto")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Service")
    table.add_column("Sent", justify="right")
    table.add_column("Received", justify="right")
    table.add_column("Duration", justify="right")

    for conn in connections[:limit]:
        src = conn.src_ip if conn.src_port is None else f"{conn.src_ip}:{conn.src_port}"
        dst = conn.dst_ip if conn.dst_port is None else f"{conn.dst_ip}:{conn.dst_port}"
        table.add_row(
            conn.protocol,
            src,
            dst,
            conn.service,
            _format_bytes(conn.bytes_sent),
            _format_bytes(conn.bytes_received),
            f"{conn.duration_ms} ms",
        )
    return table


def print_results(results: AnalysisResults, name: str = "") -> None:
    """Print one analysis."""
    header = f"Analysis {results.job_id}"
    if name:
        header += f" - {name}"
    status_style = "green" if results.status == JobStatus.COMPLETED else "red"
    console.print(f"\n[bold]{header}[/bold]  [{status_style}]{results.status.value.upper()}[/{status_style}]")

    if results.status == JobStatus.FAILED:
        console.print(f"  [red]{results.error_msg}[/red]")
        return

    console.print(get_assets_table(results))
    console.print(get_targets_table(results))
    console.print(get_connections_table(results))


def export_results(results: AnalysisResults, output_dir: str, formats: List[str]) -> Dict[str, str]:
    """Write results in every requested format."""
    written = {}
    if "json" in formats:
        written["json"] = JSONExporter(output_dir).export_results(results)
    if "csv" in formats:
        exporter = CSVExporter(output_dir)
        written["csv_connections"] = exporter.export_connections(results)
        written["csv_assets"] = exporter.export_assets(results)
        written["csv_targets"] = exporter.export_targets(results)
    return written


def _load_config(args) -> ProfilerConfig:
    config = ProfilerConfig.load(getattr(args, "config", None))
    if getattr(args, "db", None):
        config.storage.database_url = args.db
    if getattr(args, "workers", None):
        config.workers.count = args.workers
    if getattr(args, "output", None):
        config.export.output_dir = args.output
    if getattr(args, "format", None):
        config.export.formats = [f.strip() for f in args.format.split(",") if f.strip()]
    if getattr(args, "verbose", False):
        config.logging.level = "DEBUG"
    config.validate()
    return config


def run_analyze(args) -> int:
    """Analyze one or more trace files through the worker pool."""
    config = _load_config(args)
    setup_logging(config.logging.level)

    paths = [Path(p) for p in args.files]
    missing = [p for p in paths if not p.exists()]
    for p in missing:
        console.print(f"[red]File not found: {p}[/red]")
    unusual = [p for p in paths if p.exists() and p.suffix.lower() not in TRACE_SUFFIXES]
    for p in unusual:
        console.print(f"[yellow]Not a .pcap/.pcapng file, trying anyway: {p}[/yellow]")
    paths = [p for p in paths if p.exists()]
    if not paths:
        return 1

    sink = SQLSink(config.storage.database_url, echo=config.storage.echo)
    pool = WorkerPool(
        TraceAnalyzer(sink),
        num_workers=config.workers.count,
        queue=JobQueue(config.workers.queue_size),
        poll_interval=config.workers.poll_interval,
    )

    jobs: Dict[int, Path] = {}
    console.print(f"[green]Analyzing {len(paths)} file(s) with {config.workers.count} workers[/green]")

    pool.start()
    try:
        for path in paths:
            job_id = sink.create_job(path.name)
            jobs[job_id] = path
            pool.submit(job_id, PcapPacketSource(path))

        with console.status("[cyan]Waiting for analyses to finish...[/cyan]"):
            pool.wait_idle()
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted, stopping workers...[/yellow]")
    finally:
        pool.stop()

    failures = 0
    for job_id, path in jobs.items():
        results = sink.get_results(job_id)
        if results is None:
            continue
        if results.status != JobStatus.COMPLETED:
            failures += 1
        print_results(results, path.name)

        if results.status == JobStatus.COMPLETED and config.export.formats:
            for fmt, out in export_results(results, config.export.output_dir, config.export.formats).items():
                console.print(f"  {fmt}: [link=file://{out}]{out}[/link]")

    stats = pool.get_stats()
    console.print(
        f"\n[bold]Done:[/bold] {stats.jobs_completed} completed, "
        f"{stats.jobs_failed} failed in {stats.duration:.1f}s"
    )
    sink.close()
    return 1 if failures else 0


def run_show(args) -> int:
    """Print a stored analysis."""
    config = _load_config(args)
    setup_logging(config.logging.level)

    sink = SQLSink(config.storage.database_url)
    try:
        results = sink.get_results(args.job_id)
        if results is None:
            console.print(f"[red]No analysis with id {args.job_id}[/red]")
            return 1
        print_results(results)
        if args.export:
            for fmt, out in export_results(results, config.export.output_dir, config.export.formats).items():
                console.print(f"  {fmt}: {out}")
    finally:
        sink.close()
    return 0


def run_jobs(args) -> int:
    """List stored analyses."""
    config = _load_config(args)
    sink = SQLSink(config.storage.database_url)
    try:
        table = Table(title="Analyses", box=box.ROUNDED, header_style="bold cyan")
        table.add_column("ID", justify="right")
        table.add_column("File")
        table.add_column("Status")
        table.add_column("Created")
        table.add_column("Error")
        for job in sink.list_jobs():
            style = {"completed": "green", "failed": "red"}.get(job["status"], "yellow")
            table.add_row(
                str(job["id"]),
                job["filename"],
                Text(job["status"], style=style),
                job["created_at"] or "",
                job["error_msg"],
            )
        console.print(table)
    finally:
        sink.close()
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="pcap-profiler",
        description="Profile capture files: assets, targets, connections and passive OS fingerprints.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("-c", "--config", help="Path to configuration file")
        p.add_argument("--db", help="Database URL (e.g. sqlite:///results.db)")
        p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze capture files")
    analyze_parser.add_argument("files", nargs="+", help=".pcap / .pcapng files")
    analyze_parser.add_argument(
        "-w", "--workers",
        type=int,
        help="Number of concurrent analyses (default: 2)",
    )
    analyze_parser.add_argument(
        "-o", "--output",
        help="Output directory for reports (default: ./reports)",
    )
    analyze_parser.add_argument(
        "-f", "--format",
        help="Comma-separated export formats: json,csv",
    )
    add_common(analyze_parser)

    show_parser = subparsers.add_parser("show", help="Show a stored analysis")
    show_parser.add_argument("job_id", type=int, help="Analysis id")
    show_parser.add_argument("--export", action="store_true", help="Also export reports")
    show_parser.add_argument("-o", "--output", help="Output directory for reports")
    show_parser.add_argument("-f", "--format", help="Comma-separated export formats: json,csv")
    add_common(show_parser)

    jobs_parser = subparsers.add_parser("jobs", help="List stored analyses")
    add_common(jobs_parser)

    args = parser.parse_args(argv)

    if args.command == "analyze":
        sys.exit(run_analyze(args))
    elif args.command == "show":
        sys.exit(run_show(args))
    elif args.command == "jobs":
        sys.exit(run_jobs(args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
