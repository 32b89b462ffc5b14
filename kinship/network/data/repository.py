"""Relationship repository - client-side snapshot of the actor's relationships.

Holds the last-fetched partnerships, branch requests, sub-organizations,
membership requests and network members for one actor. There is no
write-through: after a mutation the caller refetches the affected slices.
A slice is replaced wholesale once its fetch fully succeeds; a failed fetch
leaves the previous slice in place and propagates the error.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import replace
from enum import Enum
from typing import Any

from ..core.context import ActorContext
from ..core.interfaces import Page, RemoteService
from ..core.models import (
    BranchRequest,
    Member,
    MembershipRequest,
    Organization,
    Partnership,
    Snapshot,
    SubOrganizations,
)
from .payloads import (
    decode_branch_request,
    decode_member,
    decode_page,
    decode_partnership,
    decode_pending_members,
    decode_records,
    decode_search_results,
    decode_sub_organizations,
    decode_user_membership_requests,
    unwrap_list,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_PAGES = 50


class Slice(Enum):
    """Independently refreshable parts of the snapshot"""

    PARTNERSHIPS = "partnerships"
    BRANCH_REQUESTS = "branch_requests"
    SUB_ORGANIZATIONS = "sub_organizations"
    MEMBERSHIP_REQUESTS = "membership_requests"
    NETWORK_MEMBERS = "network_members"


class RelationshipRepository:
    """Snapshot store for one actor, refreshed slice by slice"""

    def __init__(self, client: RemoteService, actor: ActorContext, max_pages: int = DEFAULT_MAX_PAGES):
        """Initialize the repository.

        Args:
            client: Remote service used for all reads
            actor: Actor whose relationships are tracked
            max_pages: Upper bound on pages walked for paginated slices
        """
        self.client = client
        self.actor = actor
        self.max_pages = max_pages
        self._snapshot = Snapshot()
        self._refreshers: dict[Slice, Callable[[], Awaitable[Any]]] = {
            Slice.PARTNERSHIPS: self.refresh_partnerships,
            Slice.BRANCH_REQUESTS: self.refresh_branch_requests,
            Slice.SUB_ORGANIZATIONS: self.refresh_sub_organizations,
            Slice.MEMBERSHIP_REQUESTS: self.refresh_membership_requests,
            Slice.NETWORK_MEMBERS: self.refresh_network_members,
        }

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    def _replace(self, **slices: Any) -> None:
        self._snapshot = replace(self._snapshot, **slices)

    async def refresh(self, slices: Iterable[Slice]) -> Snapshot:
        """Refetch the given slices concurrently and return the new snapshot.

        Slices that fetched successfully are replaced even when another slice
        fails; the first failure is then raised.
        """
        wanted = list(dict.fromkeys(slices))
        results = await asyncio.gather(*(self._refreshers[s]() for s in wanted), return_exceptions=True)
        errors: list[BaseException] = []
        for slice_, result in zip(wanted, results, strict=True):
            if isinstance(result, BaseException):
                logger.warning(f"Refresh of {slice_.value} for {self.actor} failed: {result}")
                errors.append(result)
        if errors:
            raise errors[0]
        return self._snapshot

    async def refresh_all(self) -> Snapshot:
        return await self.refresh(Slice)

    async def refresh_partnerships(self) -> tuple[Partnership, ...]:
        """Fetch every page of the actor's partnerships.

        The metadata's total_count is recorded as partnership_total; pages are
        walked until total_pages (or max_pages) is reached.
        """
        org = self.actor.org_ref
        if org is None:
            self._replace(partnerships=(), partnership_total=0)
            return ()

        partnerships: list[Partnership] = []
        page_number = 1
        total_count = 0
        while True:
            payload = await asyncio.to_thread(self.client.list_partnerships, org.id, org.kind, None, page_number)
            page: Page[Partnership] = decode_page(payload, decode_partnership, "partnership", page=page_number)
            partnerships.extend(page.items)
            total_count = page.total_count
            if page_number >= page.total_pages or not page.items:
                break
            if page_number >= self.max_pages:
                logger.warning(f"Stopped walking partnerships for {org} at {self.max_pages} pages")
                break
            page_number += 1

        result = tuple(partnerships)
        self._replace(partnerships=result, partnership_total=total_count)
        logger.debug(f"Refreshed {len(result)} partnerships for {org} (total {total_count})")
        return result

    async def refresh_branch_requests(self) -> tuple[BranchRequest, ...]:
        org = self.actor.org_ref
        if org is None:
            self._replace(branch_requests=())
            return ()

        payload = await asyncio.to_thread(self.client.list_branch_requests, org.id, org.kind)
        result = decode_records(
            unwrap_list(payload), lambda record: decode_branch_request(record, org.kind), "branch request"
        )
        self._replace(branch_requests=result)
        logger.debug(f"Refreshed {len(result)} branch requests for {org}")
        return result

    async def refresh_sub_organizations(self) -> SubOrganizations:
        org = self.actor.org_ref
        if org is None:
            self._replace(sub_organizations=SubOrganizations())
            return SubOrganizations()

        payload = await asyncio.to_thread(self.client.list_sub_organizations, org.id, org.kind)
        result = decode_sub_organizations(payload, org.kind)
        self._replace(sub_organizations=result)
        logger.debug(
            f"Refreshed {len(result.organizations)} sub-organizations for {org} (is_parent={result.is_parent})"
        )
        return result

    async def refresh_membership_requests(self) -> tuple[MembershipRequest, ...]:
        """Personal users see their own requests; organizations their pending joiners."""
        org = self.actor.org_ref
        if org is not None:
            payload = await asyncio.to_thread(self.client.list_pending_members, org.id, org.kind)
            result = decode_pending_members(payload, org)
        elif self.actor.user_id is not None:
            payload = await asyncio.to_thread(self.client.list_membership_requests, self.actor.user_id)
            result = decode_user_membership_requests(payload, self.actor.user_id)
        else:
            result = ()

        self._replace(membership_requests=result)
        logger.debug(f"Refreshed {len(result)} membership requests for {self.actor}")
        return result

    async def refresh_network_members(self) -> tuple[Member, ...]:
        org = self.actor.org_ref
        if org is not None:
            payload = await asyncio.to_thread(self.client.get_network_members, org.id, org.kind, True)
        elif self.actor.user_id is not None:
            payload = await asyncio.to_thread(self.client.get_user_network_members)
        else:
            self._replace(network_members=())
            return ()

        result = decode_records(unwrap_list(payload), decode_member, "network member")
        self._replace(network_members=result)
        logger.debug(f"Refreshed {len(result)} network members for {self.actor}")
        return result

    async def search_organizations(self, query: str, page: int = 1) -> Page[Organization]:
        """Search the organization catalog. Results are not part of the snapshot."""
        payload = await asyncio.to_thread(self.client.search_organizations, query, page)
        return decode_search_results(payload, page=page)
