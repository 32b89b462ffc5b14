"""
Root test configuration and fixtures for the kinship project.

Provides sample organizations, actors, factories for request records and a
mocked remote service shared by the unit tests.

Note: sys.path manipulation is handled here to ensure imports work correctly.
"""

from __future__ import annotations

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add project root to path to allow imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from kinship.network.core.context import ActorContext  # noqa: E402
from kinship.network.core.models import (  # noqa: E402
    BranchRequest,
    BranchSide,
    Member,
    MembershipRequest,
    Organization,
    OrgKind,
    OrgRef,
    PartnerRole,
    Partnership,
    PartnershipMember,
    RelationshipStatus,
)
from kinship.network.data.api_client import KinshipApiClient  # noqa: E402


def create_mock_client():
    """Create a mock remote service whose list endpoints return empty results."""
    client = Mock(spec=KinshipApiClient)
    client.list_partnerships.return_value = {"data": [], "meta": {"total_count": 0, "total_pages": 1}}
    client.list_branch_requests.return_value = []
    client.list_sub_organizations.return_value = {"data": [], "is_parent": True}
    client.list_membership_requests.return_value = {"schools": [], "companies": []}
    client.list_pending_members.return_value = {"data": []}
    client.get_network_members.return_value = {"data": []}
    client.get_user_network_members.return_value = {"data": []}
    client.search_organizations.return_value = {"schools": [], "companies": [], "meta": {}}
    for method in (
        "create_partnership",
        "accept_partnership",
        "reject_partnership",
        "delete_partnership",
        "create_branch_request",
        "confirm_branch_request",
        "reject_branch_request",
        "delete_branch_request",
        "join_school",
        "join_company",
        "accept_member",
        "reject_member",
    ):
        getattr(client, method).return_value = None
    return client


@pytest.fixture
def mock_client():
    """Mock remote service with empty list responses."""
    return create_mock_client()


@pytest.fixture
def company_a():
    return Organization(id=10, name="Acme Industries", kind=OrgKind.COMPANY, take_trainee=True)


@pytest.fixture
def school_b():
    return Organization(id=20, name="Lycee Victor Hugo", kind=OrgKind.SCHOOL)


@pytest.fixture
def company_c():
    return Organization(id=30, name="Cobalt Labs", kind=OrgKind.COMPANY)


@pytest.fixture
def company_d():
    return Organization(id=40, name="Delta Group", kind=OrgKind.COMPANY)


@pytest.fixture
def actor_a(company_a):
    """Company A acting, user 7 logged in."""
    return ActorContext(org_id=company_a.id, org_kind=OrgKind.COMPANY, user_id=7)


@pytest.fixture
def actor_b(school_b):
    """School B acting, user 8 logged in."""
    return ActorContext(org_id=school_b.id, org_kind=OrgKind.SCHOOL, user_id=8)


@pytest.fixture
def personal_actor():
    """Personal user 99 with no organization selected."""
    return ActorContext(user_id=99)


@pytest.fixture
def make_partnership():
    """Factory for partnerships between two organizations (initiator first)."""

    def _make(
        partnership_id: int,
        initiator: Organization,
        recipient: Organization,
        status: RelationshipStatus = RelationshipStatus.PENDING,
        share_members: bool = False,
    ) -> Partnership:
        return Partnership(
            id=partnership_id,
            status=status,
            initiator_id=initiator.id,
            initiator_kind=initiator.kind,
            members=(
                PartnershipMember(initiator.id, initiator.kind, PartnerRole.SPONSOR, initiator.name),
                PartnershipMember(recipient.id, recipient.kind, PartnerRole.BENEFICIARY, recipient.name),
            ),
            share_members=share_members,
        )

    return _make


@pytest.fixture
def make_branch_request():
    """Factory for branch requests (parent, child, initiating side)."""

    def _make(
        request_id: int,
        parent: Organization,
        child: Organization,
        status: RelationshipStatus = RelationshipStatus.PENDING,
        initiator: BranchSide = BranchSide.CHILD,
    ) -> BranchRequest:
        return BranchRequest(id=request_id, status=status, initiator=initiator, parent_org=parent, child_org=child)

    return _make


@pytest.fixture
def make_membership_request():
    """Factory for a user's join request to an organization."""

    def _make(
        request_id: int,
        user_id: int,
        organization: Organization,
        status: RelationshipStatus = RelationshipStatus.PENDING,
    ) -> MembershipRequest:
        return MembershipRequest(
            id=request_id,
            user_id=user_id,
            org_id=organization.id,
            org_kind=organization.kind,
            status=status,
            org_name=organization.name,
            user_name=f"User {user_id}",
        )

    return _make


@pytest.fixture
def make_member():
    """Factory for network members belonging to the given organizations."""

    def _make(member_id: int, *organizations: Organization, **fields) -> Member:
        defaults = {
            "first_name": f"First{member_id}",
            "last_name": f"Last{member_id}",
            "organizations": tuple(organization.name for organization in organizations),
            "organization_refs": tuple(OrgRef(organization.id, organization.kind) for organization in organizations),
            "kind": organizations[0].kind if organizations else None,
        }
        defaults.update(fields)
        return Member(id=member_id, **defaults)

    return _make


def partnership_record(
    partnership_id: int,
    initiator: Organization,
    recipient: Organization,
    status: str = "pending",
    share_members: bool = False,
) -> dict:
    """Raw partnership payload as the service returns it."""
    return {
        "id": partnership_id,
        "partnership_type": "bilateral",
        "status": status,
        "initiator_id": initiator.id,
        "initiator_type": initiator.kind.value.capitalize(),
        "share_members": share_members,
        "partners": [
            {"id": initiator.id, "type": initiator.kind.value, "name": initiator.name, "role": "sponsor"},
            {"id": recipient.id, "type": recipient.kind.value, "name": recipient.name, "role": "beneficiary"},
        ],
    }


@pytest.fixture
def partnership_payload():
    """Factory for raw partnership payloads."""
    return partnership_record
