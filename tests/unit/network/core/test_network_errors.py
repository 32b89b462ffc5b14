"""Tests for the network error taxonomy."""

from __future__ import annotations

from kinship.network.core.constants import GENERIC_FAILURE_MESSAGE, INSUFFICIENT_PRIVILEGE_MESSAGE
from kinship.network.core.errors import (
    AuthorizationError,
    CrossKindBranchError,
    DuplicateRequestError,
    IneligibleActionError,
    NotFoundError,
    RequestValidationError,
    TransientError,
)
from kinship.network.core.models import Action, Classification, Refusal, Role


class TestAuthorizationError:
    def test_superadmin_message_is_shown_verbatim(self):
        error = AuthorizationError("Only a superadmin can manage partnerships", status_code=403)
        assert error.requires_superadmin
        assert error.user_message == "Only a superadmin can manage partnerships"

    def test_other_messages_use_privilege_message(self):
        error = AuthorizationError("Forbidden", status_code=403)
        assert not error.requires_superadmin
        assert error.user_message == INSUFFICIENT_PRIVILEGE_MESSAGE


class TestIneligibleActionError:
    def test_message_uses_refusal(self):
        classification = Classification(
            role=Role.UNRELATED,
            refusals=((Action.ATTACH, Refusal.CROSS_KIND, "a company cannot be attached to a school"),),
        )
        error = CrossKindBranchError(Action.ATTACH, classification)
        assert str(error) == "Action 'attach' is not allowed: a company cannot be attached to a school"
        assert error.action is Action.ATTACH
        assert error.classification is classification

    def test_message_falls_back_to_role(self):
        error = IneligibleActionError(Action.ACCEPT, Classification(role=Role.INITIATOR))
        assert "actor is initiator" in str(error)

    def test_hierarchy(self):
        assert issubclass(CrossKindBranchError, IneligibleActionError)
        assert issubclass(DuplicateRequestError, IneligibleActionError)
        assert issubclass(IneligibleActionError, RequestValidationError)
        assert issubclass(NotFoundError, RequestValidationError)


class TestTransientError:
    def test_generic_user_message(self):
        error = TransientError("Server error 502: Bad Gateway", status_code=502)
        assert error.user_message == GENERIC_FAILURE_MESSAGE
        assert error.status_code == 502
