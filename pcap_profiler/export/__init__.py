"""Export module for analysis results."""

from .json_exporter import JSONExporter, results_to_dict
from .csv_exporter import CSVExporter

__all__ = [
    "JSONExporter",
    "CSVExporter",
    "results_to_dict",
]
