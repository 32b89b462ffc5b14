"""Request classifier - the actor's role and eligible actions per entity.

Works on any of the entities the dashboard lists:
- Partnership / BranchRequest / MembershipRequest records: role from the
  record's participants, then accept/reject for a pending recipient and
  cancel for a pending initiator.
- Organization candidates from the catalog: attach, propose_partnership or
  join, depending on the actor and on what the snapshot already links.

Classification never raises. An actor without a resolvable identity is
unrelated to everything and may do nothing.
"""

from __future__ import annotations

import logging

from ..core.context import ActorContext
from ..core.models import (
    Action,
    BranchRequest,
    Classification,
    MembershipRequest,
    Organization,
    OrgRef,
    Partnership,
    Refusal,
    RelationshipStatus,
    Role,
    Snapshot,
)

logger = logging.getLogger(__name__)

Entity = Partnership | BranchRequest | MembershipRequest | Organization

RECIPIENT_ACTIONS = frozenset({Action.ACCEPT, Action.REJECT})
INITIATOR_ACTIONS = frozenset({Action.CANCEL})
CANDIDATE_ACTIONS = (Action.ATTACH, Action.PROPOSE_PARTNERSHIP, Action.JOIN)

Refusals = list[tuple[Action, Refusal, str]]


class RequestClassifier:
    """Classifies entities against one relationship snapshot"""

    def __init__(self, snapshot: Snapshot):
        self.snapshot = snapshot

    def classify(self, entity: Entity, actor: ActorContext) -> Classification:
        """Determine the actor's role and eligible actions for an entity.

        Args:
            entity: A request record or a catalog organization
            actor: Who is acting

        Returns:
            Classification; unrelated with no actions when the actor cannot
            be resolved or the entity type is unknown
        """
        if not actor.is_resolvable:
            message = "no organization or user is selected"
            return Classification.unrelated(
                tuple((action, Refusal.UNRESOLVED_ACTOR, message) for action in CANDIDATE_ACTIONS)
            )

        if isinstance(entity, Partnership):
            return self._classify_partnership(entity, actor)
        if isinstance(entity, BranchRequest):
            return self._classify_branch_request(entity, actor)
        if isinstance(entity, MembershipRequest):
            return self._classify_membership_request(entity, actor)
        if isinstance(entity, Organization):
            return self._classify_candidate(entity, actor)

        logger.warning(f"Cannot classify entity of type {type(entity).__name__}")
        return Classification.unrelated()

    # === Request records ===

    def _classify_partnership(self, partnership: Partnership, actor: ActorContext) -> Classification:
        ref = actor.org_ref
        if ref is None or not partnership.involves(ref):
            return Classification.unrelated()
        role = Role.INITIATOR if partnership.initiator_ref == ref else Role.RECIPIENT
        return _for_role(role, partnership.status, f"partnership {partnership.id}")

    def _classify_branch_request(self, request: BranchRequest, actor: ActorContext) -> Classification:
        ref = actor.org_ref
        side = request.side_of(ref) if ref is not None else None
        if side is None:
            return Classification.unrelated()
        role = Role.INITIATOR if side is request.initiator else Role.RECIPIENT
        return _for_role(role, request.status, f"branch request {request.id}")

    def _classify_membership_request(self, request: MembershipRequest, actor: ActorContext) -> Classification:
        ref = actor.org_ref
        if ref is not None:
            if ref != request.org_ref:
                return Classification.unrelated()
            return _for_role(Role.RECIPIENT, request.status, f"membership request {request.id}")

        if actor.user_id != request.user_id:
            return Classification.unrelated()
        # Submitted join requests cannot be withdrawn by the user
        return Classification(
            role=Role.INITIATOR,
            refusals=((Action.CANCEL, Refusal.WRONG_ACCOUNT, "join requests cannot be withdrawn"),),
        )

    # === Catalog candidates ===

    def _classify_candidate(self, candidate: Organization, actor: ActorContext) -> Classification:
        eligible: set[Action] = set()
        refusals: Refusals = []

        for action, check in (
            (Action.ATTACH, self._attach_refusal),
            (Action.PROPOSE_PARTNERSHIP, self._partnership_refusal),
            (Action.JOIN, self._join_refusal),
        ):
            refusal = check(candidate, actor)
            if refusal is None:
                eligible.add(action)
            else:
                refusals.append((action, *refusal))

        classification = Classification(
            role=Role.UNRELATED, eligible_actions=frozenset(eligible), refusals=tuple(refusals)
        )
        logger.debug(
            f"{actor} -> {candidate.ref}: {sorted(action.value for action in classification.eligible_actions)}"
        )
        return classification

    def _attach_refusal(self, candidate: Organization, actor: ActorContext) -> tuple[Refusal, str] | None:
        """Attach makes the actor a branch (child) of the candidate"""
        ref = actor.org_ref
        if ref is None:
            return Refusal.WRONG_ACCOUNT, "only organizations can be attached"
        if candidate.ref == ref:
            return Refusal.SELF, "an organization cannot be attached to itself"
        if candidate.kind is not ref.kind:
            return Refusal.CROSS_KIND, f"a {ref.kind.value} cannot be attached to a {candidate.kind.value}"
        if self.has_parent(ref):
            return Refusal.HAS_PARENT, f"{ref} already has a pending or confirmed parent"
        if self._branch_links(ref, candidate.ref):
            return Refusal.DUPLICATE, f"{ref} and {candidate.ref} are already linked by a branch request"
        return None

    def _partnership_refusal(self, candidate: Organization, actor: ActorContext) -> tuple[Refusal, str] | None:
        ref = actor.org_ref
        if ref is None:
            return Refusal.WRONG_ACCOUNT, "only organizations can propose partnerships"
        if candidate.ref == ref:
            return Refusal.SELF, "an organization cannot partner with itself"
        if self.partnership_links(ref, candidate.ref):
            return Refusal.DUPLICATE, f"a partnership with {candidate.name or candidate.ref} already exists"
        return None

    def _join_refusal(self, candidate: Organization, actor: ActorContext) -> tuple[Refusal, str] | None:
        if not actor.is_personal_user:
            return Refusal.WRONG_ACCOUNT, "only personal accounts can join organizations"
        if self.membership_requested(actor.user_id, candidate.ref):
            return Refusal.DUPLICATE, f"a join request for {candidate.name or candidate.ref} already exists"
        return None

    # === Snapshot lookups ===

    def has_parent(self, ref: OrgRef) -> bool:
        """True when ref is the child of a pending or confirmed branch request.

        The sub-organizations endpoint reporting a parent counts too.
        """
        for request in self.snapshot.branch_requests:
            if request.status.is_active and request.child_org.ref == ref:
                return True
        sub_organizations = self.snapshot.sub_organizations
        return not sub_organizations.is_parent and bool(sub_organizations.organizations)

    def _branch_links(self, ref: OrgRef, other: OrgRef) -> bool:
        return any(
            request.status.is_active and {request.parent_org.ref, request.child_org.ref} == {ref, other}
            for request in self.snapshot.branch_requests
        )

    def partnership_links(self, ref: OrgRef, other: OrgRef) -> bool:
        """True when a pending or confirmed partnership links the two organizations"""
        return any(
            partnership.status.is_active and partnership.involves(ref) and partnership.involves(other)
            for partnership in self.snapshot.partnerships
        )

    def membership_requested(self, user_id: int | None, org: OrgRef) -> bool:
        """True when the user has a pending or confirmed request for org"""
        return any(
            request.status.is_active and request.target_key == (user_id, org)
            for request in self.snapshot.membership_requests
        )


def _for_role(role: Role, status: RelationshipStatus, label: str) -> Classification:
    """Actions open to a participant: only pending requests can be acted on"""
    own_actions = RECIPIENT_ACTIONS if role is Role.RECIPIENT else INITIATOR_ACTIONS
    if status is RelationshipStatus.PENDING:
        return Classification(role=role, eligible_actions=own_actions)
    message = f"{label} is already {status.value}"
    ordered = sorted(own_actions, key=lambda action: action.value)
    return Classification(role=role, refusals=tuple((action, Refusal.NOT_PENDING, message) for action in ordered))

