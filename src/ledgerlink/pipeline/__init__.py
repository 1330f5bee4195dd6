"""Normalization, classification, categorization and sync orchestration."""

from .categorizer import CategorizationResolver, CategoryAssignment, CategoryCache
from .flow import classify
from .orchestrator import SyncOrchestrator, SyncState, SyncSummary

__all__ = [
    "CategorizationResolver",
    "CategoryAssignment",
    "CategoryCache",
    "SyncOrchestrator",
    "SyncState",
    "SyncSummary",
    "classify",
]
