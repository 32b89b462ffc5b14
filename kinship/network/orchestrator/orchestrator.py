"""Workflow Orchestrator - runs relationship mutations and keeps the view consistent.

Every mutation is one serialized pipeline:

    classify -> remote call -> drop from pending -> refetch slices
             -> recompute aggregate -> recompute filtered members

The classifier refuses ineligible actions before any remote call. A failed
remote call leaves the snapshot and the published view untouched. Refetches
of independent slices run concurrently, but a refetch and the recompute that
depends on it always run under the same lock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from ..core.context import ActorContext
from ..core.errors import (
    CrossKindBranchError,
    DuplicateRequestError,
    IneligibleActionError,
    NetworkError,
    NotFoundError,
)
from ..core.interfaces import CatalogPage, RemoteService
from ..core.models import (
    Action,
    BranchRequest,
    Classification,
    EntityType,
    Member,
    MembershipRequest,
    NetworkView,
    Organization,
    OrgKind,
    OrgRef,
    Partnership,
    PartnerRole,
    Refusal,
    Snapshot,
)
from ..data.payloads import decode_partnership
from ..data.repository import DEFAULT_MAX_PAGES, RelationshipRepository, Slice
from ..processing.aggregation import AggregationEngine
from ..processing.classifier import Entity, RequestClassifier
from ..processing.member_filter import FilterEngine, MemberFilter

logger = logging.getLogger(__name__)

# Slices refetched after each kind of mutation
PARTNERSHIP_SLICES = (Slice.PARTNERSHIPS, Slice.NETWORK_MEMBERS)
BRANCH_SLICES = (Slice.BRANCH_REQUESTS, Slice.SUB_ORGANIZATIONS, Slice.NETWORK_MEMBERS)
MEMBERSHIP_SLICES = (Slice.MEMBERSHIP_REQUESTS, Slice.NETWORK_MEMBERS)

REFUSAL_ERRORS: dict[Refusal, type[IneligibleActionError]] = {
    Refusal.CROSS_KIND: CrossKindBranchError,
    Refusal.DUPLICATE: DuplicateRequestError,
}


class WorkflowOrchestrator:
    """Mutation and refresh entry point for one actor"""

    def __init__(
        self,
        client: RemoteService,
        actor: ActorContext,
        repository: RelationshipRepository | None = None,
        aggregation: AggregationEngine | None = None,
        filter_engine: FilterEngine | None = None,
        max_pages: int = DEFAULT_MAX_PAGES,
    ):
        """Initialize the orchestrator.

        Args:
            client: Remote service for reads and mutations
            actor: Who is acting
            repository: Snapshot store (built from client when omitted)
            aggregation: Aggregation engine
            filter_engine: Member filter engine
            max_pages: Page bound for the default repository
        """
        self.client = client
        self.actor = actor
        self.repository = repository or RelationshipRepository(client, actor, max_pages=max_pages)
        self.aggregation = aggregation or AggregationEngine()
        self.filter_engine = filter_engine or FilterEngine()

        self._lock = asyncio.Lock()
        self._view = NetworkView()
        self._member_filter = MemberFilter()
        self._filtered_members: tuple[Member, ...] = ()

    # === State ===

    @property
    def snapshot(self) -> Snapshot:
        return self.repository.snapshot

    @property
    def view(self) -> NetworkView:
        return self._view

    @property
    def member_filter(self) -> MemberFilter:
        return self._member_filter

    @property
    def filtered_members(self) -> tuple[Member, ...]:
        return self._filtered_members

    def classify(self, entity: Entity) -> Classification:
        """Classify an entity against the current snapshot"""
        return RequestClassifier(self.snapshot).classify(entity, self.actor)

    def set_filter(self, predicate: MemberFilter) -> tuple[Member, ...]:
        """Replace the member filter and recompute the filtered roster"""
        self._member_filter = predicate
        self._refilter()
        return self._filtered_members

    # === Refresh ===

    async def refresh_all(self) -> NetworkView:
        """Refetch every slice and recompute the view"""
        return await self.refresh(Slice)

    async def refresh(self, slices: Iterable[Slice]) -> NetworkView:
        """Refetch the given slices, then recompute from the new snapshot.

        Slices that refreshed are kept and the view is recomputed even when
        another slice failed; the failure is then re-raised.
        """
        async with self._lock:
            try:
                await self.repository.refresh(slices)
            finally:
                self._recompute()
        return self._view

    # === Partnerships ===

    async def propose_partnership(
        self,
        partner: Organization,
        role: PartnerRole = PartnerRole.SPONSOR,
        description: str = "",
        share_members: bool = False,
    ) -> Partnership | None:
        """Propose a bilateral partnership to another organization.

        Args:
            partner: Organization to partner with
            role: The actor's role in the partnership
            description: Free text shown to the recipient
            share_members: Whether both sides' members become visible to each other

        Returns:
            The created (pending) partnership when the server returns it
        """
        org = self._org_actor(Action.PROPOSE_PARTNERSHIP)
        payload = {
            "partnership_type": "bilateral",
            "partner_school_ids": [partner.id] if partner.kind is OrgKind.SCHOOL else [],
            "partner_company_ids": [partner.id] if partner.kind is OrgKind.COMPANY else [],
            "role": role.value,
            "description": description,
            "share_members": share_members,
        }
        response = await self._mutate(
            Action.PROPOSE_PARTNERSHIP,
            partner,
            f"partnership with {partner.ref}",
            self.client.create_partnership,
            (org.id, org.kind, payload),
            PARTNERSHIP_SLICES,
        )
        return _decoded_partnership(response)

    async def accept_partnership(self, partnership_id: int) -> NetworkView:
        return await self._act_on_partnership(Action.ACCEPT, partnership_id, self.client.accept_partnership)

    async def reject_partnership(self, partnership_id: int) -> NetworkView:
        return await self._act_on_partnership(Action.REJECT, partnership_id, self.client.reject_partnership)

    async def cancel_partnership(self, partnership_id: int) -> NetworkView:
        """Withdraw a pending partnership the actor initiated (deletes it)"""
        return await self._act_on_partnership(Action.CANCEL, partnership_id, self.client.delete_partnership)

    async def _act_on_partnership(
        self, action: Action, partnership_id: int, call: Callable[..., Any]
    ) -> NetworkView:
        org = self._org_actor(action)
        partnership = self._find(self.snapshot.partnerships, partnership_id, "Partnership")
        await self._mutate(
            action,
            partnership,
            f"partnership {partnership_id}",
            call,
            (org.id, org.kind, partnership_id),
            PARTNERSHIP_SLICES,
            pending=(EntityType.PARTNERSHIP, partnership_id),
        )
        return self._view

    # === Branch requests ===

    async def request_attachment(self, parent: Organization, message: str = "") -> NetworkView:
        """Ask to become a branch (sub-organization) of a same-kind parent"""
        org = self._org_actor(Action.ATTACH)
        payload = {f"parent_{parent.kind.value}_id": parent.id, "message": message}
        await self._mutate(
            Action.ATTACH,
            parent,
            f"attachment to {parent.ref}",
            self.client.create_branch_request,
            (org.id, org.kind, payload),
            BRANCH_SLICES,
        )
        return self._view

    async def confirm_branch_request(self, request_id: int) -> NetworkView:
        return await self._act_on_branch_request(Action.ACCEPT, request_id, self.client.confirm_branch_request)

    async def reject_branch_request(self, request_id: int) -> NetworkView:
        return await self._act_on_branch_request(Action.REJECT, request_id, self.client.reject_branch_request)

    async def cancel_branch_request(self, request_id: int) -> NetworkView:
        return await self._act_on_branch_request(Action.CANCEL, request_id, self.client.delete_branch_request)

    async def _act_on_branch_request(self, action: Action, request_id: int, call: Callable[..., Any]) -> NetworkView:
        org = self._org_actor(action)
        request: BranchRequest = self._find(self.snapshot.branch_requests, request_id, "Branch request")
        await self._mutate(
            action,
            request,
            f"branch request {request_id}",
            call,
            (org.id, org.kind, request_id),
            BRANCH_SLICES,
            pending=(EntityType.BRANCH_REQUEST, request_id),
        )
        return self._view

    # === Membership ===

    async def join_organization(self, organization: Organization) -> NetworkView:
        """Send a join request from the personal user to an organization"""
        call = self.client.join_school if organization.kind is OrgKind.SCHOOL else self.client.join_company
        await self._mutate(
            Action.JOIN,
            organization,
            f"join request to {organization.ref}",
            call,
            (organization.id,),
            MEMBERSHIP_SLICES,
        )
        return self._view

    async def accept_membership_request(self, request_id: int) -> NetworkView:
        return await self._act_on_membership_request(Action.ACCEPT, request_id, self.client.accept_member)

    async def reject_membership_request(self, request_id: int) -> NetworkView:
        return await self._act_on_membership_request(Action.REJECT, request_id, self.client.reject_member)

    async def _act_on_membership_request(
        self, action: Action, request_id: int, call: Callable[..., Any]
    ) -> NetworkView:
        org = self._org_actor(action)
        request: MembershipRequest = self._find(self.snapshot.membership_requests, request_id, "Membership request")
        await self._mutate(
            action,
            request,
            f"membership request {request_id}",
            call,
            (org.id, org.kind, request.user_id),
            MEMBERSHIP_SLICES,
            pending=(EntityType.MEMBERSHIP_REQUEST, request_id),
        )
        return self._view

    # === Catalog ===

    async def search_organizations(self, query: str, page: int = 1) -> CatalogPage:
        """Search the catalog and classify each result for the actor"""
        results = await self.repository.search_organizations(query, page)
        classifier = RequestClassifier(self.snapshot)
        entries = tuple((organization, classifier.classify(organization, self.actor)) for organization in results.items)
        return CatalogPage(
            entries=entries,
            total_count=results.total_count,
            total_pages=results.total_pages,
            page=results.page,
        )

    # === Pipeline ===

    async def _mutate(
        self,
        action: Action,
        entity: Entity,
        label: str,
        call: Callable[..., Any],
        args: tuple[Any, ...],
        slices: Iterable[Slice],
        pending: tuple[EntityType, int] | None = None,
    ) -> Any:
        """Run one mutation pipeline under the lock.

        Raises:
            IneligibleActionError: The classifier refused the action; no remote call was made
            NetworkError: The remote call failed; state is unchanged
        """
        async with self._lock:
            self._require(action, entity, label)

            try:
                response = await asyncio.to_thread(call, *args)
            except NetworkError as e:
                logger.warning(f"{action.value} {label} failed for {self.actor}: {type(e).__name__}: {e}")
                raise

            logger.info(f"{action.value} {label} succeeded for {self.actor}")

            if pending is not None:
                self._view = self._view.without_pending(*pending)

            try:
                await self.repository.refresh(slices)
            except NetworkError:
                # Keep the resolved item out of the pending views until a refetch succeeds
                self._recompute(hide=pending)
                raise
            self._recompute()
            return response

    def _require(self, action: Action, entity: Entity, label: str) -> Classification:
        classification = RequestClassifier(self.snapshot).classify(entity, self.actor)
        if classification.allows(action):
            return classification

        refusal = classification.refusal_for(action)
        error_class = REFUSAL_ERRORS.get(refusal[0], IneligibleActionError) if refusal else IneligibleActionError
        error = error_class(action, classification)
        logger.warning(f"Refused {action.value} {label} for {self.actor}: {error}")
        raise error

    def _recompute(self, hide: tuple[EntityType, int] | None = None) -> None:
        view = self.aggregation.aggregate(self.snapshot, self.actor)
        if hide is not None:
            view = view.without_pending(*hide)
        self._view = view
        self._refilter()

    def _refilter(self) -> None:
        self._filtered_members = self.filter_engine.apply(self._view.network_members, self._member_filter)

    def _org_actor(self, action: Action) -> OrgRef:
        ref = self.actor.org_ref
        if ref is None:
            raise IneligibleActionError(
                action,
                Classification.unrelated(),
                message=f"Action '{action.value}' requires an organization context",
            )
        return ref

    @staticmethod
    def _find(items: Iterable[Any], item_id: int, label: str) -> Any:
        for item in items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"{label} {item_id} is not in the current snapshot")


def _decoded_partnership(response: Any) -> Partnership | None:
    record = response.get("data", response) if isinstance(response, dict) else None
    if not isinstance(record, dict):
        return None
    try:
        return decode_partnership(record)
    except (ValueError, TypeError) as e:
        logger.debug(f"Created partnership could not be decoded: {e}")
        return None
