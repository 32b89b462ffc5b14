"""Error classes for the network engine.

Three families, matching how failures are surfaced to the user:
- AuthorizationError: rejected by the server for lack of privilege (403).
- RequestValidationError: the action is invalid, detected locally before any
  remote call or reported by the server.
- TransientError: network failures and unexpected server errors.

None of them is retried automatically; the user re-invokes the action.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .constants import (
    GENERIC_FAILURE_MESSAGE,
    INSUFFICIENT_PRIVILEGE_MESSAGE,
    SUPERADMIN_MARKER,
)

if TYPE_CHECKING:
    from .models import Action, Classification


class NetworkError(Exception):
    """Base exception for relationship workflow errors."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def user_message(self) -> str:
        return str(self)


class AuthorizationError(NetworkError):
    """Raised when the server refuses the action for lack of privilege."""

    @property
    def requires_superadmin(self) -> bool:
        return SUPERADMIN_MARKER in str(self).lower()

    @property
    def user_message(self) -> str:
        # Superadmin-required messages are shown verbatim
        if self.requires_superadmin:
            return str(self)
        return INSUFFICIENT_PRIVILEGE_MESSAGE


class RequestValidationError(NetworkError):
    """Raised when an action is invalid for the current state."""

    pass


class IneligibleActionError(RequestValidationError):
    """Raised locally when the classifier does not allow the action."""

    def __init__(self, action: Action, classification: Classification, message: str | None = None):
        refusal = classification.refusal_for(action)
        reason = refusal[1] if refusal else f"actor is {classification.role.value}"
        super().__init__(message or f"Action '{action.value}' is not allowed: {reason}")
        self.action = action
        self.classification = classification


class CrossKindBranchError(IneligibleActionError):
    """Raised when a branch attachment would link a school and a company."""

    pass


class DuplicateRequestError(IneligibleActionError):
    """Raised when a pending or confirmed request already links the two sides."""

    pass


class NotFoundError(RequestValidationError):
    """Raised when the target item is unknown locally or on the server."""

    pass


class TransientError(NetworkError):
    """Raised for connection failures, timeouts and unexpected responses."""

    @property
    def user_message(self) -> str:
        return GENERIC_FAILURE_MESSAGE
