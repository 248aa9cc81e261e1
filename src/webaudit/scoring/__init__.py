"""
Scoring module - Deterministic risk score from scan signals.
"""

from .engine import (
    RiskScoringEngine,
    RiskLevel,
    ScoreResult,
    SecurityIssue,
    ISSUE_CATALOG,
    classify,
)


__all__ = [
    "RiskScoringEngine",
    "RiskLevel",
    "ScoreResult",
    "SecurityIssue",
    "ISSUE_CATALOG",
    "classify",
]
