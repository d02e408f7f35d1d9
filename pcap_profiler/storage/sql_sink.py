"""SQLAlchemy-backed sink."""

import logging
from datetime import datetime, timezone
from threading import Lock
from typing import List, Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    insert,
    select,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..errors import SinkWriteError, StatusUpdateError
from ..models.asset import AssetInfo, TargetInfo, TargetLabel
from ..models.flow import ConnectionRecord
from ..models.job import AnalysisResults, JobStatus
from .sink import Sink


logger = logging.getLogger(__name__)

metadata = MetaData()

analyses = Table(
    "analyses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("filename", Text, nullable=False),
    Column("status", String(16), nullable=False, index=True),
    Column("error_msg", Text),
    Column("created_at", DateTime, default=lambda: datetime.now(timezone.utc)),
    Column("completed_at", DateTime),
)

assets = Table(
    "assets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("analysis_id", Integer, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("ip_address", Text, nullable=False),
    Column("os_type", Text),
    Column("os_confidence", Float, default=0),
    Column("mac_address", Text),
)

targets = Table(
    "targets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("analysis_id", Integer, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("ip_address", Text, nullable=False),
    Column("label", String(16), nullable=False),
)


def _connection_table(name: str, ports_required: bool) -> Table:
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("analysis_id", Integer, ForeignKey("analyses.id", ondelete="CASCADE"), nullable=False, index=True),
        Column("src_ip", Text, nullable=False),
        Column("dst_ip", Text, nullable=False),
        Column("src_port", Integer, nullable=not ports_required),
        Column("dst_port", Integer, nullable=not ports_required),
        Column("bytes_sent", Integer, default=0),
        Column("bytes_received", Integer, default=0),
        Column("protocol", String(8), nullable=False),
        Column("duration_ms", Integer, default=0),
        Column("service", Text),
        Column("start_time", Text),
        Column("end_time", Text),
        Column("start_ts", Float),
        Column("end_ts", Float),
    )


tcp_connections = _connection_table("tcp_connections", ports_required=True)
other_connections = _connection_table("other_connections", ports_required=False)


def create_sink_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite is pinned to one shared connection."""
    url = make_url(database_url)
    kwargs = {"echo": echo, "future": True}
    if url.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


class SQLSink(Sink):
    """
    Persists analysis records through SQLAlchemy Core.

    Writes are serialized with a lock; each call runs in its own
    transaction, so one failed row never rolls back the others.
    """

    def __init__(self, database_url: str = "sqlite://", echo: bool = False):
        self.database_url = database_url
        self.engine = create_sink_engine(database_url, echo=echo)
        self._lock = Lock()
        metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    def create_job(self, name: str) -> int:
        with self._lock, self.engine.begin() as conn:
            result = conn.execute(
                insert(analyses).values(
                    filename=name,
                    status=JobStatus.PENDING.value,
                    created_at=datetime.now(timezone.utc),
                )
            )
            return int(result.inserted_primary_key[0])

    def update_job_status(
        self, job_id: int, status: JobStatus, error_msg: str = ""
    ) -> None:
        completed_at = datetime.now(timezone.utc) if status.is_terminal else None
        try:
            with self._lock, self.engine.begin() as conn:
                result = conn.execute(
                    update(analyses)
                    .where(analyses.c.id == job_id)
                    .values(status=status.value, error_msg=error_msg, completed_at=completed_at)
                )
                if result.rowcount == 0:
                    raise StatusUpdateError(f"analysis {job_id} does not exist")
        except SQLAlchemyError as e:
            raise StatusUpdateError(f"failed to update status of analysis {job_id}: {e}") from e

    def _insert(self, table: Table, values: dict) -> None:
        try:
            with self._lock, self.engine.begin() as conn:
                conn.execute(insert(table).values(**values))
        except SQLAlchemyError as e:
            raise SinkWriteError(f"failed to write {table.name} row: {e}") from e

    def save_asset(
        self,
        job_id: int,
        ip_address: str,
        os_type: str,
        os_confidence: float,
        mac_address: Optional[str],
    ) -> None:
        self._insert(assets, {
            "analysis_id": job_id,
            "ip_address": ip_address,
            "os_type": os_type,
            "os_confidence": os_confidence,
            "mac_address": mac_address,
        })

    def save_target(self, job_id: int, ip_address: str, label: TargetLabel) -> None:
        self._insert(targets, {
            "analysis_id": job_id,
            "ip_address": ip_address,
            "label": label.value,
        })

    @staticmethod
    def _connection_values(job_id: int, record: ConnectionRecord) -> dict:
        return {
            "analysis_id": job_id,
            "src_ip": record.src_ip,
            "dst_ip": record.dst_ip,
            "src_port": record.src_port,
            "dst_port": record.dst_port,
            "bytes_sent": record.bytes_sent,
            "bytes_received": record.bytes_received,
            "protocol": record.protocol,
            "duration_ms": record.duration_ms,
            "service": record.service,
            "start_time": record.start_time_iso,
            "end_time": record.end_time_iso,
            "start_ts": record.start_time,
            "end_ts": record.end_time,
        }

    def save_tcp_connection(self, job_id: int, record: ConnectionRecord) -> None:
        self._insert(tcp_connections, self._connection_values(job_id, record))

    def save_other_connection(self, job_id: int, record: ConnectionRecord) -> None:
        self._insert(other_connections, self._connection_values(job_id, record))

    @staticmethod
    def _row_to_connection(row) -> ConnectionRecord:
        return ConnectionRecord(
            protocol=row.protocol,
            src_ip=row.src_ip,
            dst_ip=row.dst_ip,
            src_port=row.src_port,
            dst_port=row.dst_port,
            bytes_sent=row.bytes_sent or 0,
            bytes_received=row.bytes_received or 0,
            duration_ms=row.duration_ms or 0,
            service=row.service or "unknown",
            start_time=row.start_ts or 0.0,
            end_time=row.end_ts or 0.0,
        )

    def get_results(self, job_id: int) -> Optional[AnalysisResults]:
        with self._lock, self.engine.connect() as conn:
            job = conn.execute(
                select(analyses).where(analyses.c.id == job_id)
            ).first()
            if job is None:
                return None

            asset_rows = conn.execute(
                select(assets).where(assets.c.analysis_id == job_id).order_by(assets.c.id)
            ).all()
            target_rows = conn.execute(
                select(targets).where(targets.c.analysis_id == job_id).order_by(targets.c.id)
            ).all()
            tcp_rows = conn.execute(
                select(tcp_connections)
                .where(tcp_connections.c.analysis_id == job_id)
                .order_by(tcp_connections.c.id)
            ).all()
            other_rows = conn.execute(
                select(other_connections)
                .where(other_connections.c.analysis_id == job_id)
                .order_by(other_connections.c.id)
            ).all()

        return AnalysisResults(
            job_id=job_id,
            status=JobStatus(job.status),
            error_msg=job.error_msg or "",
            assets=[
                AssetInfo(
                    ip_address=r.ip_address,
                    mac_address=r.mac_address,
                    os_type=r.os_type,
                    os_confidence=r.os_confidence or 0.0,
                )
                for r in asset_rows
            ],
            targets=[TargetInfo(r.ip_address, TargetLabel(r.label)) for r in target_rows],
            tcp_connections=[self._row_to_connection(r) for r in tcp_rows],
            other_connections=[self._row_to_connection(r) for r in other_rows],
        )

    def list_jobs(self) -> List[dict]:
        """Summaries of every stored analysis, newest first."""
        with self._lock, self.engine.connect() as conn:
            rows = conn.execute(
                select(analyses).order_by(analyses.c.id.desc())
            ).all()
        return [
            {
                "id": r.id,
                "filename": r.filename,
                "status": r.status,
                "error_msg": r.error_msg or "",
                "created_at": r.created_at.isoformat() if r.created_at else None,
                "completed_at": r.completed_at.isoformat() if r.completed_at else None,
            }
            for r in rows
        ]
