"""Tests for actor context resolution."""

from __future__ import annotations

import pytest

from kinship.network.core.context import ActorContext, resolve_actor_context
from kinship.network.core.models import OrgKind, OrgRef


@pytest.fixture
def user():
    return {
        "id": 7,
        "available_contexts": {
            "companies": [
                {"id": 10, "name": "Acme", "role": "member"},
                {"id": 11, "name": "Bolt", "role": "admin"},
            ],
            "schools": [
                {"id": 20, "name": "Lycee", "role": "superadmin"},
                {"id": 21, "name": "College", "role": "teacher"},
            ],
        },
    }


class TestActorContext:
    def test_organization_actor(self):
        actor = ActorContext(org_id=10, org_kind=OrgKind.COMPANY, user_id=7)
        assert actor.org_ref == OrgRef(10, OrgKind.COMPANY)
        assert actor.is_organization
        assert not actor.is_personal_user
        assert str(actor) == "org company:10"

    def test_personal_actor(self):
        actor = ActorContext(user_id=7)
        assert actor.org_ref is None
        assert actor.is_personal_user
        assert actor.is_resolvable

    def test_missing_kind_is_not_an_organization(self):
        actor = ActorContext(org_id=10)
        assert actor.org_ref is None
        assert not actor.is_resolvable

    def test_malformed_kind_is_not_an_organization(self):
        actor = ActorContext(org_id=10, org_kind="company")  # type: ignore[arg-type]
        assert actor.org_ref is None

    def test_empty_actor(self):
        assert str(ActorContext()) == "unresolved actor"


class TestResolveActorContext:
    """Saved context first, then the first organization, then personal."""

    def test_saved_admin_company_wins(self, user):
        actor = resolve_actor_context(user, "pro", saved_context=("company", 11))
        assert actor == ActorContext(org_id=11, org_kind=OrgKind.COMPANY, user_id=7)

    def test_saved_company_without_admin_role_falls_back(self, user):
        actor = resolve_actor_context(user, "pro", saved_context=("company", "10"))
        # Falls back to the first company listed
        assert actor.org_ref == OrgRef(10, OrgKind.COMPANY)

    def test_saved_context_of_other_kind_is_ignored(self, user):
        actor = resolve_actor_context(user, "edu", saved_context=("company", 11))
        assert actor.org_ref == OrgRef(20, OrgKind.SCHOOL)

    def test_teacher_may_use_any_school(self, user):
        actor = resolve_actor_context(user, "teacher", saved_context=("school", 21))
        assert actor.org_ref == OrgRef(21, OrgKind.SCHOOL)

    def test_edu_requires_admin_for_saved_school(self, user):
        actor = resolve_actor_context(user, "edu", saved_context=("school", 21))
        assert actor.org_ref == OrgRef(20, OrgKind.SCHOOL)

    def test_user_page_is_personal(self, user):
        actor = resolve_actor_context(user, "user", saved_context=("school", 20))
        assert actor == ActorContext(user_id=7)

    def test_no_organizations_is_personal(self):
        actor = resolve_actor_context({"id": "7", "available_contexts": {}}, "pro")
        assert actor == ActorContext(user_id=7)

    @pytest.mark.parametrize(
        "user",
        [
            {},
            {"id": None},
            {"id": 7, "available_contexts": "broken"},
            {"id": 7, "available_contexts": {"companies": ["broken", {"id": "x"}]}},
        ],
    )
    def test_malformed_input_never_raises(self, user):
        actor = resolve_actor_context(user, "pro", saved_context=("company", "not-a-number"))
        assert actor.org_ref is None

    def test_unknown_page_type_is_personal(self, user):
        assert resolve_actor_context(user, "admin").org_ref is None
