"""Core domain models for the network relationship engine.

These models represent the fundamental business concepts and are
independent of any external dependencies. Raw API payloads are decoded
into them once, at the repository boundary (see data/payloads.py)."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any


class OrgKind(Enum):
    """Kinds of organizations"""

    SCHOOL = "school"
    COMPANY = "company"

    @property
    def path_segment(self) -> str:
        """Collection name used in API paths (/schools, /companies)"""
        return "schools" if self is OrgKind.SCHOOL else "companies"


class OrgStatus(Enum):
    """Registration status of an organization"""

    ACTIVE = "active"
    PENDING = "pending"
    INACTIVE = "inactive"


class RelationshipStatus(Enum):
    """Status shared by partnerships, branch requests and membership requests.

    Deleted (cancelled) requests are removed by the server, so there is no
    cancelled status.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not RelationshipStatus.PENDING

    @property
    def is_active(self) -> bool:
        """Pending or confirmed - the statuses that block a second request"""
        return self is not RelationshipStatus.REJECTED


class PartnerRole(Enum):
    """Role of an organization inside a partnership"""

    SPONSOR = "sponsor"
    BENEFICIARY = "beneficiary"


class BranchSide(Enum):
    """Side of a branch relationship"""

    PARENT = "parent"
    CHILD = "child"

    @property
    def opposite(self) -> BranchSide:
        return BranchSide.CHILD if self is BranchSide.PARENT else BranchSide.PARENT


class Role(Enum):
    """Role of the actor with respect to a request"""

    INITIATOR = "initiator"
    RECIPIENT = "recipient"
    UNRELATED = "unrelated"


class Action(Enum):
    """Actions an actor may take on an organization or a request"""

    ATTACH = "attach"
    PROPOSE_PARTNERSHIP = "propose_partnership"
    JOIN = "join"
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"


class EntityType(Enum):
    """Request entities tracked in the pending views"""

    PARTNERSHIP = "partnership"
    BRANCH_REQUEST = "branch_request"
    MEMBERSHIP_REQUEST = "membership_request"


class Refusal(Enum):
    """Why the classifier withheld an action"""

    UNRESOLVED_ACTOR = "unresolved_actor"
    WRONG_ACCOUNT = "wrong_account"  # e.g. an organization trying to join
    SELF = "self"
    CROSS_KIND = "cross_kind"
    HAS_PARENT = "has_parent"
    DUPLICATE = "duplicate"
    NOT_PENDING = "not_pending"


class RelationKind(Enum):
    """Kinds of confirmed relationships shown in the partners view"""

    PARTNER = "partner"
    SUB_ORGANIZATION = "sub_organization"
    PARENT = "parent"


@dataclass(frozen=True)
class OrgRef:
    """Identity of an organization.

    The same numeric id under two kinds names two distinct organizations.
    """

    id: int
    kind: OrgKind

    def __lt__(self, other: OrgRef) -> bool:
        return (self.kind.value, self.id) < (other.kind.value, other.id)

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True)
class Organization:
    """A school or company. Read-only to this engine."""

    id: int
    name: str
    kind: OrgKind
    status: OrgStatus = OrgStatus.ACTIVE
    member_count: int = 0
    location: str = ""
    contact: str = ""
    email: str = ""
    take_trainee: bool = False  # Offers internships (company attribute)
    propose_workshop: bool = False  # Offers workshops (company attribute)

    @property
    def ref(self) -> OrgRef:
        return OrgRef(self.id, self.kind)


@dataclass(frozen=True)
class PartnershipMember:
    """One participating organization of a partnership"""

    org_id: int
    org_kind: OrgKind
    role: PartnerRole
    name: str = ""

    @property
    def ref(self) -> OrgRef:
        return OrgRef(self.org_id, self.org_kind)


@dataclass(frozen=True)
class Partnership:
    """A bilateral, status-tracked relationship between two organizations"""

    id: int
    status: RelationshipStatus
    initiator_id: int
    initiator_kind: OrgKind
    members: tuple[PartnershipMember, ...]
    partnership_type: str = "bilateral"
    created_at: datetime | None = None
    description: str = ""
    share_members: bool = False

    def __post_init__(self) -> None:
        refs = {member.ref for member in self.members}
        if len(self.members) != 2 or len(refs) != 2:
            raise ValueError(f"Partnership {self.id} must link exactly two distinct organizations")
        if self.initiator_ref not in refs:
            raise ValueError(f"Partnership {self.id} initiator {self.initiator_ref} is not a participant")

    @property
    def initiator_ref(self) -> OrgRef:
        return OrgRef(self.initiator_id, self.initiator_kind)

    @property
    def participant_refs(self) -> tuple[OrgRef, OrgRef]:
        return (self.members[0].ref, self.members[1].ref)

    def involves(self, ref: OrgRef) -> bool:
        return ref in self.participant_refs

    def counterpart_of(self, ref: OrgRef) -> PartnershipMember | None:
        """Return the other participant, or None if ref does not participate"""
        if not self.involves(ref):
            return None
        return next(member for member in self.members if member.ref != ref)


@dataclass(frozen=True)
class BranchRequest:
    """A request to make child_org a sub-organization of parent_org.

    Branch relationships only link organizations of the same kind.
    """

    id: int
    status: RelationshipStatus
    initiator: BranchSide
    parent_org: Organization
    child_org: Organization
    message: str = ""
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        if self.parent_org.kind is not self.child_org.kind:
            raise ValueError(
                f"Branch request {self.id} links a {self.parent_org.kind.value} "
                f"to a {self.child_org.kind.value}"
            )
        if self.parent_org.ref == self.child_org.ref:
            raise ValueError(f"Branch request {self.id} attaches {self.parent_org.ref} to itself")

    @property
    def recipient(self) -> BranchSide:
        return self.initiator.opposite

    def org_on(self, side: BranchSide) -> Organization:
        return self.parent_org if side is BranchSide.PARENT else self.child_org

    @property
    def initiator_org(self) -> Organization:
        return self.org_on(self.initiator)

    @property
    def recipient_org(self) -> Organization:
        return self.org_on(self.recipient)

    def side_of(self, ref: OrgRef) -> BranchSide | None:
        if ref == self.parent_org.ref:
            return BranchSide.PARENT
        if ref == self.child_org.ref:
            return BranchSide.CHILD
        return None


@dataclass(frozen=True)
class MembershipRequest:
    """A personal user's request to join an organization"""

    id: int
    user_id: int
    org_id: int
    org_kind: OrgKind
    status: RelationshipStatus
    requested_at: datetime | None = None
    org_name: str = ""
    user_name: str = ""
    role: str = ""

    @property
    def org_ref(self) -> OrgRef:
        return OrgRef(self.org_id, self.org_kind)

    @property
    def target_key(self) -> tuple[int, OrgRef]:
        """Uniqueness key: one active request per (user, organization)"""
        return (self.user_id, self.org_ref)


@dataclass(frozen=True)
class Member:
    """An individual reachable through the actor's network.

    Derived, never persisted by this engine.
    """

    id: int
    first_name: str
    last_name: str
    email: str = ""
    skills: tuple[str, ...] = ()
    availability: tuple[str, ...] = ()
    organizations: tuple[str, ...] = ()  # Names of the member's own organizations
    common_organizations: tuple[str, ...] = ()  # Names shared with the viewer
    organization_refs: tuple[OrgRef, ...] = ()
    kind: OrgKind | None = None  # Kind of the member's home organization
    take_trainee: bool = False
    propose_workshop: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def known_organizations(self) -> tuple[str, ...]:
        """Own organizations, falling back to shared ones when none are known"""
        return self.organizations or self.common_organizations

    def merged_with(self, newer: Member) -> Member:
        """Merge a more recently seen record of the same member.

        Scalar fields: the newer value wins unless it is empty. Organization
        names and references are unioned, keeping first-seen order.
        """
        if newer.id != self.id:
            raise ValueError(f"Cannot merge member {newer.id} into member {self.id}")

        def pick(old: Any, new: Any) -> Any:
            return new if new not in ("", (), None) else old

        return replace(
            self,
            first_name=pick(self.first_name, newer.first_name),
            last_name=pick(self.last_name, newer.last_name),
            email=pick(self.email, newer.email),
            skills=pick(self.skills, newer.skills),
            availability=pick(self.availability, newer.availability),
            organizations=_union(self.organizations, newer.organizations),
            common_organizations=_union(self.common_organizations, newer.common_organizations),
            organization_refs=_union(self.organization_refs, newer.organization_refs),
            kind=pick(self.kind, newer.kind),
            take_trainee=newer.take_trainee or self.take_trainee,
            propose_workshop=newer.propose_workshop or self.propose_workshop,
        )


def _union(first: tuple[Any, ...], second: tuple[Any, ...]) -> tuple[Any, ...]:
    return tuple(dict.fromkeys(first + second))


@dataclass(frozen=True)
class SubOrganizations:
    """Result of the sub-organizations endpoint.

    When is_parent is False the actor is itself a branch and organizations
    holds its parent.
    """

    organizations: tuple[Organization, ...] = ()
    is_parent: bool = True


@dataclass(frozen=True)
class Snapshot:
    """Last-fetched relationship data for the active actor.

    Slices are only ever replaced wholesale, never patched in place.
    """

    partnerships: tuple[Partnership, ...] = ()
    partnership_total: int = 0
    branch_requests: tuple[BranchRequest, ...] = ()
    sub_organizations: SubOrganizations = field(default_factory=SubOrganizations)
    membership_requests: tuple[MembershipRequest, ...] = ()
    network_members: tuple[Member, ...] = ()


@dataclass(frozen=True)
class Classification:
    """Role of the actor and the actions it may take on one entity"""

    role: Role
    eligible_actions: frozenset[Action] = frozenset()
    refusals: tuple[tuple[Action, Refusal, str], ...] = ()

    @classmethod
    def unrelated(cls, refusals: tuple[tuple[Action, Refusal, str], ...] = ()) -> Classification:
        return cls(role=Role.UNRELATED, eligible_actions=frozenset(), refusals=refusals)

    def allows(self, action: Action) -> bool:
        return action in self.eligible_actions

    def refusal_for(self, action: Action) -> tuple[Refusal, str] | None:
        """Return (refusal, message) recorded for a withheld action"""
        for refused, refusal, message in self.refusals:
            if refused is action:
                return refusal, message
        return None


@dataclass(frozen=True)
class Relationship:
    """One confirmed relationship in the partners view"""

    source_id: int | None  # Backing partnership or branch request, if known
    relation: RelationKind
    organization: OrgRef
    name: str = ""
    role: Role = Role.UNRELATED


@dataclass(frozen=True)
class PendingItem:
    """One pending request in the received or sent views"""

    entity_type: EntityType
    id: int
    role: Role
    counterpart_name: str
    eligible_actions: frozenset[Action] = frozenset()
    counterpart: OrgRef | None = None  # None for a personal user's counterpart


@dataclass(frozen=True)
class NetworkView:
    """Derived dashboard view, fully recomputed from a snapshot"""

    confirmed_partner_count: int = 0
    confirmed_branch_count: int = 0
    network_members: tuple[Member, ...] = ()
    partners_view: tuple[Relationship, ...] = ()
    pending_received: tuple[PendingItem, ...] = ()
    pending_sent: tuple[PendingItem, ...] = ()
    partnership_total: int = 0

    @property
    def pending_received_count(self) -> int:
        return len(self.pending_received)

    def without_pending(self, entity_type: EntityType, item_id: int) -> NetworkView:
        """Return a copy with one item dropped from both pending views"""

        def keep(item: PendingItem) -> bool:
            return not (item.entity_type is entity_type and item.id == item_id)

        return replace(
            self,
            pending_received=tuple(item for item in self.pending_received if keep(item)),
            pending_sent=tuple(item for item in self.pending_sent if keep(item)),
        )
