"""Tests for the network domain models."""

from __future__ import annotations

import pytest

from kinship.network.core.models import (
    BranchRequest,
    BranchSide,
    EntityType,
    Member,
    NetworkView,
    Organization,
    OrgKind,
    OrgRef,
    PartnerRole,
    Partnership,
    PartnershipMember,
    PendingItem,
    RelationshipStatus,
    Role,
)


class TestOrgRef:
    """Identity is (id, kind)."""

    def test_same_id_different_kind_are_distinct(self):
        assert OrgRef(5, OrgKind.SCHOOL) != OrgRef(5, OrgKind.COMPANY)
        assert len({OrgRef(5, OrgKind.SCHOOL), OrgRef(5, OrgKind.COMPANY)}) == 2

    def test_ordering_is_by_kind_then_id(self):
        refs = [OrgRef(2, OrgKind.SCHOOL), OrgRef(9, OrgKind.COMPANY), OrgRef(1, OrgKind.SCHOOL)]
        assert sorted(refs) == [OrgRef(9, OrgKind.COMPANY), OrgRef(1, OrgKind.SCHOOL), OrgRef(2, OrgKind.SCHOOL)]

    def test_str(self):
        assert str(OrgRef(3, OrgKind.COMPANY)) == "company:3"


class TestRelationshipStatus:
    def test_terminal_statuses(self):
        assert not RelationshipStatus.PENDING.is_terminal
        assert RelationshipStatus.CONFIRMED.is_terminal
        assert RelationshipStatus.REJECTED.is_terminal

    def test_active_statuses(self):
        assert RelationshipStatus.PENDING.is_active
        assert RelationshipStatus.CONFIRMED.is_active
        assert not RelationshipStatus.REJECTED.is_active


class TestPartnership:
    """Bilateral partnership invariants."""

    def _member(self, org_id, kind=OrgKind.COMPANY, role=PartnerRole.SPONSOR):
        return PartnershipMember(org_id, kind, role)

    def test_requires_exactly_two_members(self):
        with pytest.raises(ValueError, match="exactly two"):
            Partnership(
                id=1,
                status=RelationshipStatus.PENDING,
                initiator_id=1,
                initiator_kind=OrgKind.COMPANY,
                members=(self._member(1),),
            )

    def test_requires_distinct_members(self):
        with pytest.raises(ValueError, match="exactly two"):
            Partnership(
                id=1,
                status=RelationshipStatus.PENDING,
                initiator_id=1,
                initiator_kind=OrgKind.COMPANY,
                members=(self._member(1), self._member(1, role=PartnerRole.BENEFICIARY)),
            )

    def test_same_id_different_kind_counts_as_two(self):
        partnership = Partnership(
            id=1,
            status=RelationshipStatus.PENDING,
            initiator_id=1,
            initiator_kind=OrgKind.COMPANY,
            members=(self._member(1), self._member(1, kind=OrgKind.SCHOOL)),
        )
        assert partnership.counterpart_of(OrgRef(1, OrgKind.COMPANY)).org_kind is OrgKind.SCHOOL

    def test_initiator_must_participate(self):
        with pytest.raises(ValueError, match="not a participant"):
            Partnership(
                id=1,
                status=RelationshipStatus.PENDING,
                initiator_id=3,
                initiator_kind=OrgKind.COMPANY,
                members=(self._member(1), self._member(2)),
            )

    def test_counterpart_of(self, make_partnership, company_a, school_b, company_c):
        partnership = make_partnership(1, company_a, school_b)
        assert partnership.counterpart_of(company_a.ref).ref == school_b.ref
        assert partnership.counterpart_of(school_b.ref).ref == company_a.ref
        assert partnership.counterpart_of(company_c.ref) is None


class TestBranchRequest:
    """Branch requests link same-kind organizations only."""

    def test_cross_kind_is_invalid(self, company_a, school_b):
        with pytest.raises(ValueError, match="links a school to a company"):
            BranchRequest(
                id=1,
                status=RelationshipStatus.PENDING,
                initiator=BranchSide.CHILD,
                parent_org=school_b,
                child_org=company_a,
            )

    def test_self_attach_is_invalid(self, company_a):
        with pytest.raises(ValueError, match="to itself"):
            BranchRequest(
                id=1,
                status=RelationshipStatus.PENDING,
                initiator=BranchSide.CHILD,
                parent_org=company_a,
                child_org=company_a,
            )

    def test_sides(self, make_branch_request, company_a, company_c, company_d):
        request = make_branch_request(1, parent=company_d, child=company_a, initiator=BranchSide.CHILD)
        assert request.recipient is BranchSide.PARENT
        assert request.initiator_org == company_a
        assert request.recipient_org == company_d
        assert request.side_of(company_a.ref) is BranchSide.CHILD
        assert request.side_of(company_d.ref) is BranchSide.PARENT
        assert request.side_of(company_c.ref) is None


class TestMember:
    """Member projections and merging."""

    def test_known_organizations_prefers_own(self):
        member = Member(id=1, first_name="Ana", last_name="Diaz", organizations=("Acme",), common_organizations=("X",))
        assert member.known_organizations == ("Acme",)

    def test_known_organizations_falls_back_to_common(self):
        member = Member(id=1, first_name="Ana", last_name="Diaz", common_organizations=("X",))
        assert member.known_organizations == ("X",)

    def test_full_name_strips(self):
        assert Member(id=1, first_name="Ana", last_name="").full_name == "Ana"

    def test_merge_newer_non_empty_wins(self):
        older = Member(id=1, first_name="Ana", last_name="Diaz", email="old@example.com", skills=("Python",))
        newer = Member(id=1, first_name="Anna", last_name="", email="new@example.com")

        merged = older.merged_with(newer)

        assert merged.first_name == "Anna"
        assert merged.last_name == "Diaz"
        assert merged.email == "new@example.com"
        assert merged.skills == ("Python",)

    def test_merge_unions_organizations_in_order(self):
        acme = OrgRef(10, OrgKind.COMPANY)
        lycee = OrgRef(20, OrgKind.SCHOOL)
        older = Member(id=1, first_name="A", last_name="B", organizations=("Acme",), organization_refs=(acme,))
        newer = Member(
            id=1, first_name="A", last_name="B", organizations=("Lycee", "Acme"), organization_refs=(lycee, acme)
        )

        merged = older.merged_with(newer)

        assert merged.organizations == ("Acme", "Lycee")
        assert merged.organization_refs == (acme, lycee)

    def test_merge_flags_are_ored(self):
        older = Member(id=1, first_name="A", last_name="B", take_trainee=True)
        newer = Member(id=1, first_name="A", last_name="B", propose_workshop=True)

        merged = older.merged_with(newer)

        assert merged.take_trainee and merged.propose_workshop

    def test_merge_rejects_other_member(self):
        with pytest.raises(ValueError):
            Member(id=1, first_name="A", last_name="B").merged_with(Member(id=2, first_name="C", last_name="D"))


class TestNetworkView:
    def test_without_pending_drops_matching_item_only(self):
        partnership_item = PendingItem(EntityType.PARTNERSHIP, 5, Role.RECIPIENT, "B")
        branch_item = PendingItem(EntityType.BRANCH_REQUEST, 5, Role.INITIATOR, "C")
        view = NetworkView(pending_received=(partnership_item,), pending_sent=(branch_item,))

        updated = view.without_pending(EntityType.PARTNERSHIP, 5)

        assert updated.pending_received == ()
        assert updated.pending_sent == (branch_item,)
        assert view.pending_received == (partnership_item,)

    def test_organization_ref(self):
        organization = Organization(id=4, name="X", kind=OrgKind.SCHOOL)
        assert organization.ref == OrgRef(4, OrgKind.SCHOOL)
