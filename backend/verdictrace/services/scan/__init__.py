"""Cluster detection scan orchestration."""
from .scan_orchestrator import ScanOrchestrator, run_scan

__all__ = ["ScanOrchestrator", "run_scan"]
