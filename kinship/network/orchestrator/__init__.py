"""Mutation workflows and refetch sequencing."""

from __future__ import annotations

from .orchestrator import WorkflowOrchestrator

__all__ = ["WorkflowOrchestrator"]
