"""
PCAP Profiler - Passive Traffic Profiling for Capture Files

Turns trace files into a per-host inventory, destination labels,
per-flow connection records and passive OS fingerprints, with a small
worker pool for analysing several captures concurrently.
"""

__version__ = "1.0.0"
__author__ = "Network Team"
