"""Organizational relationship and request workflow engine.

Tracks partnerships, branch (sub-organization) requests and membership
requests for the active actor, classifies what the actor may do with each
item, and derives the aggregate views shown on the network dashboard.

Usage:
    from kinship.network import ActorContext, OrgKind, WorkflowOrchestrator

    actor = ActorContext(org_id=10, org_kind=OrgKind.COMPANY, user_id=7)
    orchestrator = WorkflowOrchestrator(client, actor)
    view = await orchestrator.refresh_all()
"""

from __future__ import annotations

from .core.context import ActorContext, resolve_actor_context
from .core.errors import (
    AuthorizationError,
    CrossKindBranchError,
    DuplicateRequestError,
    IneligibleActionError,
    NetworkError,
    NotFoundError,
    RequestValidationError,
    TransientError,
)
from .core.models import (
    Action,
    BranchRequest,
    Member,
    MembershipRequest,
    NetworkView,
    Organization,
    OrgKind,
    OrgRef,
    Partnership,
    RelationshipStatus,
    Role,
    Snapshot,
)
from .orchestrator import WorkflowOrchestrator
from .processing import AggregationEngine, FilterEngine, MemberFilter, RequestClassifier

__all__ = [
    "Action",
    "ActorContext",
    "AggregationEngine",
    "AuthorizationError",
    "BranchRequest",
    "CrossKindBranchError",
    "DuplicateRequestError",
    "FilterEngine",
    "IneligibleActionError",
    "Member",
    "MemberFilter",
    "MembershipRequest",
    "NetworkError",
    "NetworkView",
    "NotFoundError",
    "OrgKind",
    "OrgRef",
    "Organization",
    "Partnership",
    "RelationshipStatus",
    "RequestClassifier",
    "RequestValidationError",
    "Role",
    "Snapshot",
    "TransientError",
    "WorkflowOrchestrator",
    "resolve_actor_context",
]
