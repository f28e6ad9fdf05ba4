"""
Domain audit: expected vs discovered comparison, and the pass runner.

Public entrypoints: compare(), AuditOrchestrator
"""

from .comparator import compare
from .models import AnomalyFlag, DomainResult, DomainSpec, Expectation
from .orchestrator import AuditOrchestrator

__all__ = ["compare", "AnomalyFlag", "DomainResult", "DomainSpec", "Expectation", "AuditOrchestrator"]
