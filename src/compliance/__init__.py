"""
LOT 3: Compliance

Invariants couverts:
- EVAL_001-006 (Table de règles, intégrité, fail-closed)
"""
from .interfaces import (
    # Dataclasses
    AccessAttempt,
    ComplianceResult,
    # Interfaces
    IRestrictionEvaluator,
    IViolationReporter,
)
from .restriction_evaluator import (
    RestrictionEvaluator,
    evaluate_restrictions,
    RULES,
    INTEGRITY_VIOLATION,
    TRAINING_PURPOSES,
)

__all__ = [
    # Dataclasses
    "AccessAttempt",
    "ComplianceResult",
    # Interfaces
    "IRestrictionEvaluator",
    "IViolationReporter",
    # Implementations
    "RestrictionEvaluator",
    "evaluate_restrictions",
    "RULES",
    "INTEGRITY_VIOLATION",
    "TRAINING_PURPOSES",
]
