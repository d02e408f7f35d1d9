"""Storage layer for analysis results."""

from .sink import Sink, MemorySink
from .sql_sink import SQLSink

__all__ = ["Sink", "MemorySink", "SQLSink"]
