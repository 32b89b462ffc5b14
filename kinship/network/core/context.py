"""Actor context - the identity on whose behalf the engine evaluates actions.

The dashboard lets a user act as one of the organizations they administer
(or, for teachers, belong to) or as themselves. Everything downstream takes
an explicit ActorContext instead of reading the selection from globals.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from .constants import ADMIN_ROLES
from .models import OrgKind, OrgRef

logger = logging.getLogger(__name__)

# Dashboard page types and the organization kind each one acts for
PAGE_TYPE_KINDS: dict[str, OrgKind | None] = {
    "pro": OrgKind.COMPANY,
    "edu": OrgKind.SCHOOL,
    "teacher": OrgKind.SCHOOL,
    "user": None,
}


@dataclass(frozen=True)
class ActorContext:
    """Who is acting: an organization (with the acting user) or a personal user.

    Attributes:
        org_id: Organization acted for, None for a personal user
        org_kind: Kind of that organization
        user_id: Logged-in user
    """

    org_id: int | None = None
    org_kind: OrgKind | None = None
    user_id: int | None = None

    @property
    def org_ref(self) -> OrgRef | None:
        """Organization identity, or None when no organization is resolvable"""
        if self.org_id is None or not isinstance(self.org_kind, OrgKind):
            return None
        return OrgRef(self.org_id, self.org_kind)

    @property
    def is_organization(self) -> bool:
        return self.org_ref is not None

    @property
    def is_personal_user(self) -> bool:
        return self.org_ref is None and self.user_id is not None

    @property
    def is_resolvable(self) -> bool:
        return self.is_organization or self.is_personal_user

    def __str__(self) -> str:
        if self.org_ref is not None:
            return f"org {self.org_ref}"
        if self.user_id is not None:
            return f"user {self.user_id}"
        return "unresolved actor"


def _to_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _contexts(user: Mapping[str, Any], kind: OrgKind) -> list[Mapping[str, Any]]:
    available = user.get("available_contexts") or {}
    if not isinstance(available, Mapping):
        return []
    entries = available.get(kind.path_segment) or []
    return [entry for entry in entries if isinstance(entry, Mapping)]


def _may_act_for(entry: Mapping[str, Any], page_type: str) -> bool:
    # Teachers act for any school they are a confirmed member of
    if page_type == "teacher":
        return True
    return entry.get("role") in ADMIN_ROLES


def resolve_actor_context(
    user: Mapping[str, Any],
    page_type: str,
    saved_context: tuple[str, Any] | None = None,
) -> ActorContext:
    """Resolve the acting organization for a logged-in user.

    Args:
        user: Current user payload with ``id`` and ``available_contexts``
            (``{"schools": [...], "companies": [...]}``, each entry with
            ``id`` and ``role``)
        page_type: Dashboard page type: "pro", "edu", "teacher" or "user"
        saved_context: Previously selected (context_type, context_id), where
            context_type is "school" or "company"

    Returns:
        The saved organization when it matches the page type and the user
        still holds it, otherwise the first organization of the page's kind,
        otherwise a personal-user context. Never raises.
    """
    user_id = _to_int(user.get("id")) if isinstance(user, Mapping) else None
    kind = PAGE_TYPE_KINDS.get(page_type)
    if kind is None or not isinstance(user, Mapping):
        return ActorContext(user_id=user_id)

    candidates = _contexts(user, kind)

    if saved_context is not None:
        saved_type, saved_id = saved_context
        saved_org_id = _to_int(saved_id)
        if saved_type == kind.value and saved_org_id is not None:
            for entry in candidates:
                if _to_int(entry.get("id")) == saved_org_id and _may_act_for(entry, page_type):
                    return ActorContext(org_id=saved_org_id, org_kind=kind, user_id=user_id)
            logger.debug(f"Saved context {saved_type}:{saved_id} is no longer available for user {user_id}")

    # Fall back to the first organization of the page's kind
    for entry in candidates[:1]:
        org_id = _to_int(entry.get("id"))
        if org_id is not None:
            return ActorContext(org_id=org_id, org_kind=kind, user_id=user_id)

    return ActorContext(user_id=user_id)
