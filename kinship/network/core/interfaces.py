"""Abstract interfaces (protocols) for dependency injection.

The remote service is the only persistence collaborator. Implementations
return raw JSON-compatible payloads; decoding into domain models happens
once, in the repository."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Generic, Protocol, TypeVar

from .models import Classification, Organization, OrgKind

T = TypeVar("T")


class RemoteService(Protocol):
    """Protocol for the Kinship REST service.

    All methods may raise AuthorizationError, RequestValidationError,
    NotFoundError or TransientError.
    """

    def list_partnerships(
        self, org_id: int, org_kind: OrgKind, status: str | None = None, page: int = 1
    ) -> dict[str, Any]:
        """Return ``{"data": [...], "meta": {"total_count", "total_pages"}}``"""
        ...

    def create_partnership(self, org_id: int, org_kind: OrgKind, payload: dict[str, Any]) -> dict[str, Any]:
        """Create a pending partnership and return it"""
        ...

    def accept_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any: ...

    def reject_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any: ...

    def delete_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any: ...

    def list_branch_requests(self, org_id: int, org_kind: OrgKind) -> Any:
        """Return a list of branch requests (optionally wrapped in ``data``)"""
        ...

    def create_branch_request(self, org_id: int, org_kind: OrgKind, payload: dict[str, Any]) -> Any: ...

    def confirm_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any: ...

    def reject_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any: ...

    def delete_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any: ...

    def list_sub_organizations(self, org_id: int, org_kind: OrgKind) -> dict[str, Any]:
        """Return ``{"data": [...], "is_parent": bool}``"""
        ...

    def list_membership_requests(self, user_id: int) -> dict[str, Any]:
        """Return ``{"schools": [...], "companies": [...]}`` for a personal user"""
        ...

    def join_school(self, org_id: int) -> Any: ...

    def join_company(self, org_id: int) -> Any: ...

    def list_pending_members(self, org_id: int, org_kind: OrgKind) -> Any:
        """Return the organization's pending join requests"""
        ...

    def accept_member(self, org_id: int, org_kind: OrgKind, member_id: int) -> Any: ...

    def reject_member(self, org_id: int, org_kind: OrgKind, member_id: int) -> Any: ...

    def get_network_members(self, org_id: int, org_kind: OrgKind, share_members: bool = True) -> Any:
        """Return individuals reachable from an organization"""
        ...

    def get_user_network_members(self) -> Any:
        """Return individuals reachable from the logged-in personal user"""
        ...

    def search_organizations(self, query: str, page: int = 1) -> dict[str, Any]:
        """Return ``{"schools": [...], "companies": [...], "meta": {...}}``"""
        ...


@dataclass(frozen=True)
class Page(Generic[T]):
    """One decoded page of a list endpoint.

    total_count and total_pages come from the response metadata when
    present, falling back to the local item count.
    """

    items: tuple[T, ...] = ()
    total_count: int = 0
    total_pages: int = 1
    page: int = 1

    @property
    def has_more(self) -> bool:
        return self.page < self.total_pages


@dataclass(frozen=True)
class CatalogPage:
    """A page of catalog search results with the actor's eligibility per entry"""

    entries: tuple[tuple[Organization, Classification], ...] = ()
    total_count: int = 0
    total_pages: int = 1
    page: int = 1
