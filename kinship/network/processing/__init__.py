"""Classification, aggregation and filtering over relationship snapshots."""

from __future__ import annotations

from .aggregation import AggregationEngine, merge_members
from .classifier import RequestClassifier
from .member_filter import FilterEngine, MemberFilter

__all__ = [
    "AggregationEngine",
    "FilterEngine",
    "MemberFilter",
    "RequestClassifier",
    "merge_members",
]
