"""Pydantic payload models for the Kinship REST service.

This is the single decode step between transport payloads and the strict
domain models. The service is loose about field names ("type" vs
"organization_type", "members_count" vs "member_count") and capitalization
("School" vs "school"), so every alias and normalization lives here and
nowhere else.

Records that fail to decode are logged and skipped; a response whose overall
shape is wrong raises TransientError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any, TypeVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.constants import AVAILABILITY_DAYS, AVAILABLE_ANY
from ..core.errors import TransientError
from ..core.interfaces import Page
from ..core.models import (
    BranchRequest,
    BranchSide,
    Member,
    MembershipRequest,
    Organization,
    OrgKind,
    OrgRef,
    OrgStatus,
    PartnerRole,
    Partnership,
    PartnershipMember,
    RelationshipStatus,
    SubOrganizations,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

_KIND_ALIASES = {
    "school": OrgKind.SCHOOL,
    "schools": OrgKind.SCHOOL,
    "company": OrgKind.COMPANY,
    "companies": OrgKind.COMPANY,
}

_STATUS_ALIASES = {
    "pending": RelationshipStatus.PENDING,
    "confirmed": RelationshipStatus.CONFIRMED,
    "accepted": RelationshipStatus.CONFIRMED,
    "active": RelationshipStatus.CONFIRMED,
    "rejected": RelationshipStatus.REJECTED,
    "declined": RelationshipStatus.REJECTED,
}


def parse_kind(value: Any) -> OrgKind | None:
    """Normalize "School", "schools", OrgKind... to an OrgKind"""
    if isinstance(value, OrgKind):
        return value
    if isinstance(value, str):
        return _KIND_ALIASES.get(value.strip().lower())
    return None


def parse_status(value: Any) -> RelationshipStatus:
    if isinstance(value, RelationshipStatus):
        return value
    if isinstance(value, str) and value.strip().lower() in _STATUS_ALIASES:
        return _STATUS_ALIASES[value.strip().lower()]
    raise ValueError(f"Unknown relationship status: {value!r}")


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class OrganizationPayload(_Payload):
    """A school or company as returned by list and search endpoints."""

    id: int
    name: str = ""
    kind: OrgKind | None = Field(
        default=None, validation_alias=AliasChoices("kind", "type", "organization_type", "org_type")
    )
    status: str = "active"
    member_count: int = Field(
        default=0, validation_alias=AliasChoices("member_count", "members_count")
    )
    location: str = Field(default="", validation_alias=AliasChoices("location", "city", "address"))
    contact: str = Field(default="", validation_alias=AliasChoices("contact", "contact_person", "referent"))
    email: str = Field(default="", validation_alias=AliasChoices("email", "contact_email"))
    take_trainee: bool = False
    propose_workshop: bool = False

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> OrgKind | None:
        return parse_kind(v)

    @field_validator("name", "status", "location", "contact", "email", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("member_count", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    def to_domain(self, default_kind: OrgKind | None = None) -> Organization:
        kind = self.kind or default_kind
        if kind is None:
            raise ValueError(f"Organization {self.id} has no resolvable kind")
        try:
            status = OrgStatus(self.status.lower())
        except ValueError:
            status = OrgStatus.ACTIVE
        return Organization(
            id=self.id,
            name=self.name,
            kind=kind,
            status=status,
            member_count=self.member_count,
            location=self.location,
            contact=self.contact,
            email=self.email,
            take_trainee=self.take_trainee,
            propose_workshop=self.propose_workshop,
        )


class PartnershipMemberPayload(_Payload):
    org_id: int = Field(validation_alias=AliasChoices("org_id", "organization_id", "partner_id", "id"))
    org_kind: OrgKind = Field(
        validation_alias=AliasChoices("org_kind", "organization_type", "partner_type", "type")
    )
    role: str = Field(default="beneficiary", validation_alias=AliasChoices("role", "role_in_partnership"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "organization_name"))

    @field_validator("org_kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> OrgKind | None:
        return parse_kind(v)

    @field_validator("name", "role", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_domain(self) -> PartnershipMember:
        role = PartnerRole.SPONSOR if self.role.lower() == PartnerRole.SPONSOR.value else PartnerRole.BENEFICIARY
        return PartnershipMember(org_id=self.org_id, org_kind=self.org_kind, role=role, name=self.name)


class PartnershipPayload(_Payload):
    id: int
    partnership_type: str = "bilateral"
    status: RelationshipStatus
    initiator_id: int
    initiator_kind: OrgKind = Field(validation_alias=AliasChoices("initiator_kind", "initiator_type"))
    members: list[PartnershipMemberPayload] = Field(
        default_factory=list, validation_alias=AliasChoices("members", "partners", "partnership_members")
    )
    created_at: datetime | None = None
    description: str = ""
    share_members: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> RelationshipStatus:
        return parse_status(v)

    @field_validator("initiator_kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> OrgKind | None:
        return parse_kind(v)

    @field_validator("description", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_domain(self) -> Partnership:
        return Partnership(
            id=self.id,
            status=self.status,
            initiator_id=self.initiator_id,
            initiator_kind=self.initiator_kind,
            members=tuple(member.to_domain() for member in self.members),
            partnership_type=self.partnership_type,
            created_at=self.created_at,
            description=self.description,
            share_members=self.share_members,
        )


class BranchRequestPayload(_Payload):
    id: int
    status: RelationshipStatus
    initiator: BranchSide
    recipient: BranchSide | None = None
    parent_org: OrganizationPayload = Field(
        validation_alias=AliasChoices("parent_org", "parent", "parent_school", "parent_company")
    )
    child_org: OrganizationPayload = Field(
        validation_alias=AliasChoices("child_org", "child", "child_school", "child_company")
    )
    message: str = ""
    created_at: datetime | None = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> RelationshipStatus:
        return parse_status(v)

    @field_validator("initiator", "recipient", mode="before")
    @classmethod
    def normalize_side(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("message", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_domain(self, default_kind: OrgKind | None = None) -> BranchRequest:
        if self.recipient is not None and self.recipient is self.initiator:
            raise ValueError(f"Branch request {self.id} has the same initiator and recipient side")
        return BranchRequest(
            id=self.id,
            status=self.status,
            initiator=self.initiator,
            parent_org=self.parent_org.to_domain(default_kind),
            child_org=self.child_org.to_domain(default_kind),
            message=self.message,
            created_at=self.created_at,
        )


class MembershipRequestPayload(_Payload):
    """A join request, either from a user's own listing or an organization's pending members."""

    id: int
    user_id: int | None = None
    org_id: int | None = Field(
        default=None, validation_alias=AliasChoices("org_id", "organization_id", "school_id", "company_id")
    )
    organization: OrganizationPayload | None = Field(
        default=None, validation_alias=AliasChoices("organization", "school", "company")
    )
    status: RelationshipStatus = RelationshipStatus.PENDING
    requested_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("requested_at", "created_at", "joined_at")
    )
    first_name: str = ""
    last_name: str = ""
    role: str = ""

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, v: Any) -> RelationshipStatus:
        return parse_status(v) if v is not None else RelationshipStatus.PENDING

    @field_validator("first_name", "last_name", "role", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def to_domain(self, org_kind: OrgKind, user_id: int | None = None, org_id: int | None = None) -> MembershipRequest:
        target_id = self.org_id if self.org_id is not None else (self.organization.id if self.organization else org_id)
        requester_id = self.user_id if self.user_id is not None else user_id
        if target_id is None or requester_id is None:
            raise ValueError(f"Membership request {self.id} is missing its user or organization")
        return MembershipRequest(
            id=self.id,
            user_id=requester_id,
            org_id=target_id,
            org_kind=org_kind,
            status=self.status,
            requested_at=self.requested_at,
            org_name=self.organization.name if self.organization else "",
            user_name=f"{self.first_name} {self.last_name}".strip(),
            role=self.role,
        )


class MemberPayload(_Payload):
    id: int
    first_name: str = ""
    last_name: str = ""
    full_name: str = ""
    email: str = ""
    skills: list[Any] = Field(default_factory=list)
    availability: Any = None
    organizations: list[Any] = Field(default_factory=list)
    common_organizations: list[Any] = Field(default_factory=list)
    kind: OrgKind | None = Field(
        default=None, validation_alias=AliasChoices("kind", "organization_type", "org_type")
    )
    take_trainee: bool = False
    propose_workshop: bool = False

    @field_validator("kind", mode="before")
    @classmethod
    def normalize_kind(cls, v: Any) -> OrgKind | None:
        return parse_kind(v)

    @field_validator("first_name", "last_name", "full_name", "email", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("skills", "organizations", "common_organizations", mode="before")
    @classmethod
    def none_to_list(cls, v: Any) -> Any:
        return [] if v is None else v

    def to_domain(self) -> Member:
        first_name, last_name = self.first_name, self.last_name
        if not (first_name or last_name) and self.full_name:
            first_name, _, last_name = self.full_name.partition(" ")
        refs = tuple(ref for ref in (_org_ref(entry) for entry in self.organizations) if ref is not None)
        kinds = {ref.kind for ref in refs}
        kind = self.kind or (kinds.pop() if len(kinds) == 1 else None)
        return Member(
            id=self.id,
            first_name=first_name,
            last_name=last_name,
            email=self.email,
            skills=flatten_skills(self.skills),
            availability=availability_keys(self.availability),
            organizations=_org_names(self.organizations),
            common_organizations=_org_names(self.common_organizations),
            organization_refs=refs,
            kind=kind,
            take_trainee=self.take_trainee,
            propose_workshop=self.propose_workshop,
        )


class PageMeta(_Payload):
    total_count: int | None = Field(default=None, validation_alias=AliasChoices("total_count", "totalCount"))
    total_pages: int | None = Field(default=None, validation_alias=AliasChoices("total_pages", "totalPages"))
    current_page: int | None = Field(default=None, validation_alias=AliasChoices("current_page", "page"))


def flatten_skills(skills: Iterable[Any]) -> tuple[str, ...]:
    """Flatten ``[{name, sub_skills: [{name}]}]`` into main and sub-skill names."""
    names: list[str] = []
    for skill in skills:
        if isinstance(skill, str):
            names.append(skill)
            continue
        if not isinstance(skill, dict):
            continue
        if skill.get("name"):
            names.append(str(skill["name"]))
        for sub in skill.get("sub_skills") or []:
            if isinstance(sub, dict) and sub.get("name"):
                names.append(str(sub["name"]))
            elif isinstance(sub, str):
                names.append(sub)
    return tuple(dict.fromkeys(names))


def availability_keys(availability: Any) -> tuple[str, ...]:
    """Decode availability day flags into canonical keys.

    ``{"monday": True, "available": True}`` -> ``("monday",)``;
    ``{"available": True}`` -> ``("available",)``. Lists of keys pass through
    filtered to known values.
    """
    if isinstance(availability, dict):
        days = tuple(day for day in AVAILABILITY_DAYS if availability.get(day))
        if not days and availability.get(AVAILABLE_ANY):
            return (AVAILABLE_ANY,)
        return days
    if isinstance(availability, list | tuple):
        wanted = {str(value).strip().lower() for value in availability}
        days = tuple(day for day in AVAILABILITY_DAYS if day in wanted)
        if not days and AVAILABLE_ANY in wanted:
            return (AVAILABLE_ANY,)
        return days
    return ()


def _org_ref(entry: Any) -> OrgRef | None:
    if not isinstance(entry, dict):
        return None
    kind = parse_kind(entry.get("type") or entry.get("organization_type") or entry.get("kind"))
    try:
        org_id = int(entry.get("id"))
    except (TypeError, ValueError):
        return None
    return OrgRef(org_id, kind) if kind is not None else None


def _org_names(entries: Iterable[Any]) -> tuple[str, ...]:
    names = []
    for entry in entries:
        if isinstance(entry, str):
            names.append(entry)
        elif isinstance(entry, dict) and entry.get("name"):
            names.append(str(entry["name"]))
    return tuple(dict.fromkeys(names))


def unwrap_list(payload: Any, key: str = "data") -> list[Any]:
    """Return the record list of a response that may be wrapped in ``{key: [...]}``."""
    if isinstance(payload, dict):
        payload = payload.get(key, [])
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise TransientError(f"Unexpected response shape: expected a list, got {type(payload).__name__}")
    return payload


def decode_records(records: Iterable[Any], decode: Callable[[Any], T], label: str) -> tuple[T, ...]:
    """Decode each record, skipping (and logging) the ones that fail."""
    decoded: list[T] = []
    for record in records:
        try:
            decoded.append(decode(record))
        except (ValidationError, ValueError, TypeError) as e:
            record_id = record.get("id") if isinstance(record, dict) else None
            logger.warning(f"Skipping malformed {label} record {record_id}: {e}")
    return tuple(decoded)


def decode_page(payload: Any, decode: Callable[[Any], T], label: str, page: int = 1) -> Page[T]:
    """Decode a paginated ``{data, meta}`` response.

    Metadata counts are authoritative when present; the local item count is
    only a fallback.
    """
    items = decode_records(unwrap_list(payload), decode, label)
    meta = _page_meta(payload, label)
    return Page(
        items=items,
        total_count=meta.total_count if meta.total_count is not None else len(items),
        total_pages=meta.total_pages if meta.total_pages is not None else 1,
        page=meta.current_page or page,
    )


def decode_partnership(record: Any) -> Partnership:
    return PartnershipPayload.model_validate(record).to_domain()


def decode_organization(record: Any, default_kind: OrgKind | None = None) -> Organization:
    return OrganizationPayload.model_validate(record).to_domain(default_kind)


def decode_branch_request(record: Any, default_kind: OrgKind | None = None) -> BranchRequest:
    return BranchRequestPayload.model_validate(record).to_domain(default_kind)


def decode_member(record: Any) -> Member:
    return MemberPayload.model_validate(record).to_domain()


def decode_sub_organizations(payload: Any, default_kind: OrgKind) -> SubOrganizations:
    records = unwrap_list(payload)
    is_parent = True
    if isinstance(payload, dict):
        is_parent = bool(payload.get("is_parent", payload.get("isParent", True)))
    organizations = decode_records(
        records, lambda record: decode_organization(record, default_kind), "sub-organization"
    )
    return SubOrganizations(organizations=organizations, is_parent=is_parent)


def decode_user_membership_requests(payload: Any, user_id: int) -> tuple[MembershipRequest, ...]:
    """Decode a personal user's ``{schools: [...], companies: [...]}`` listing."""
    if not isinstance(payload, dict):
        raise TransientError("Unexpected membership request response shape")
    requests: list[MembershipRequest] = []
    for kind in (OrgKind.SCHOOL, OrgKind.COMPANY):
        requests.extend(
            decode_records(
                unwrap_list(payload, kind.path_segment),
                lambda record, kind=kind: MembershipRequestPayload.model_validate(record).to_domain(
                    kind, user_id=user_id
                ),
                f"{kind.value} membership request",
            )
        )
    return tuple(requests)


def decode_pending_members(payload: Any, org_ref: OrgRef) -> tuple[MembershipRequest, ...]:
    """Decode an organization's pending member list into membership requests."""
    return decode_records(
        unwrap_list(payload),
        lambda record: MembershipRequestPayload.model_validate(record).to_domain(
            org_ref.kind, user_id=_record_user_id(record), org_id=org_ref.id
        ),
        "pending member",
    )


def _record_user_id(record: Any) -> int | None:
    # Pending member entries identify the user either directly or by record id
    if not isinstance(record, dict):
        return None
    user = record.get("user")
    if isinstance(user, dict) and user.get("id") is not None:
        return int(user["id"])
    value = record.get("user_id", record.get("id"))
    return int(value) if value is not None else None


def decode_search_results(payload: Any, page: int = 1) -> Page[Organization]:
    """Decode a catalog search response with separate school and company lists."""
    if not isinstance(payload, dict):
        raise TransientError("Unexpected search response shape")
    organizations: list[Organization] = []
    for kind in (OrgKind.SCHOOL, OrgKind.COMPANY):
        organizations.extend(
            decode_records(
                unwrap_list(payload, kind.path_segment),
                lambda record, kind=kind: decode_organization(record, kind),
                f"{kind.value} search result",
            )
        )
    meta = _page_meta(payload, "search result")
    return Page(
        items=tuple(organizations),
        total_count=meta.total_count if meta.total_count is not None else len(organizations),
        total_pages=meta.total_pages if meta.total_pages is not None else 1,
        page=meta.current_page or page,
    )


def _page_meta(payload: Any, label: str) -> PageMeta:
    if isinstance(payload, dict) and isinstance(payload.get("meta"), dict):
        try:
            return PageMeta.model_validate(payload["meta"])
        except ValidationError as e:
            logger.warning(f"Ignoring malformed {label} page metadata: {e}")
    return PageMeta()
