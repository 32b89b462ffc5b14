"""Aggregation engine - derives the network view from a relationship snapshot.

Confirmed relationships are loaded into a networkx multigraph centred on the
actor's organization, one edge per (pair, relation). Counts, the partners
view and the set of organizations whose members are visible are all read
from that graph, so duplicate confirmed records naming the same partner
collapse into a single edge.

Every call rebuilds everything from the snapshot; nothing is carried over
between calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

import networkx as nx

from kinship.logging_config import TRACE

from ..core.context import ActorContext
from ..core.models import (
    BranchRequest,
    EntityType,
    Member,
    MembershipRequest,
    NetworkView,
    OrgRef,
    Partnership,
    PendingItem,
    Relationship,
    RelationKind,
    RelationshipStatus,
    Role,
    Snapshot,
)
from .classifier import RequestClassifier

logger = logging.getLogger(__name__)

PARTNER_EDGE = "partner"
BRANCH_EDGE = "branch"


class AggregationEngine:
    """Computes NetworkView instances from snapshots"""

    def aggregate(self, snapshot: Snapshot, actor: ActorContext) -> NetworkView:
        """Derive counts, member roster, partners view and pending views.

        Args:
            snapshot: Last-fetched relationship data for the actor
            actor: Who the view is computed for

        Returns:
            A fully recomputed NetworkView
        """
        classifier = RequestClassifier(snapshot)
        graph = self.build_graph(snapshot, actor)
        ref = actor.org_ref

        partners = self._neighbors(graph, ref, PARTNER_EDGE)
        children = self._children(graph, ref)
        # A branch does not count branches of its own
        is_branch = self._parent(graph, ref) is not None

        received, sent = self._pending_items(snapshot, actor, classifier)

        view = NetworkView(
            confirmed_partner_count=len(partners),
            confirmed_branch_count=0 if is_branch else len(children),
            network_members=self._network_members(snapshot, actor, graph),
            partners_view=self._partners_view(graph, ref),
            pending_received=received,
            pending_sent=sent,
            partnership_total=snapshot.partnership_total,
        )
        logger.debug(
            f"Aggregated view for {actor}: {view.confirmed_partner_count} partners, "
            f"{view.confirmed_branch_count} branches, {len(view.network_members)} network members, "
            f"{view.pending_received_count} pending received, {len(view.pending_sent)} pending sent"
        )
        return view

    # === Graph ===

    def build_graph(self, snapshot: Snapshot, actor: ActorContext) -> nx.MultiGraph:
        """Build the graph of confirmed relationships around the actor.

        Nodes are OrgRef values carrying a ``name`` attribute. Partner edges
        carry ``source_id``, ``share_members`` and the actor's ``role``;
        branch edges carry ``parent``, ``child``, ``source_id`` and ``role``.
        """
        graph = nx.MultiGraph()
        ref = actor.org_ref
        if ref is None:
            return graph
        graph.add_node(ref, name="")

        for partnership in sorted(snapshot.partnerships, key=lambda p: p.id):
            if partnership.status is RelationshipStatus.CONFIRMED:
                self._add_partnership(graph, ref, partnership)

        for request in sorted(snapshot.branch_requests, key=lambda r: r.id):
            if request.status is RelationshipStatus.CONFIRMED:
                self._add_branch_request(graph, ref, request)

        sub_organizations = snapshot.sub_organizations
        for organization in sub_organizations.organizations:
            if organization.ref == ref:
                continue
            graph.add_node(organization.ref, name=organization.name)
            if sub_organizations.is_parent:
                self._add_branch(graph, parent=ref, child=organization.ref, source_id=None, role=Role.UNRELATED)
            else:
                self._add_branch(graph, parent=organization.ref, child=ref, source_id=None, role=Role.UNRELATED)

        logger.log(TRACE, f"Graph for {actor}: {graph.number_of_nodes()} nodes, {graph.number_of_edges()} edges")
        return graph

    def _add_partnership(self, graph: nx.MultiGraph, ref: OrgRef, partnership: Partnership) -> None:
        counterpart = partnership.counterpart_of(ref)
        if counterpart is None:
            logger.debug(f"Skipping partnership {partnership.id}: {ref} is not a participant")
            return
        graph.add_node(counterpart.ref, name=counterpart.name)
        role = Role.INITIATOR if partnership.initiator_ref == ref else Role.RECIPIENT
        if graph.has_edge(ref, counterpart.ref, key=PARTNER_EDGE):
            # Keep the first (lowest id) record; sharing from any record counts
            data = graph.edges[ref, counterpart.ref, PARTNER_EDGE]
            data["share_members"] = data["share_members"] or partnership.share_members
            return
        graph.add_edge(
            ref,
            counterpart.ref,
            key=PARTNER_EDGE,
            source_id=partnership.id,
            share_members=partnership.share_members,
            role=role,
        )

    def _add_branch_request(self, graph: nx.MultiGraph, ref: OrgRef, request: BranchRequest) -> None:
        side = request.side_of(ref)
        if side is None:
            logger.debug(f"Skipping branch request {request.id}: {ref} is not a participant")
            return
        for organization in (request.parent_org, request.child_org):
            graph.add_node(organization.ref, name=organization.name)
        role = Role.INITIATOR if side is request.initiator else Role.RECIPIENT
        self._add_branch(graph, request.parent_org.ref, request.child_org.ref, request.id, role)

    @staticmethod
    def _add_branch(graph: nx.MultiGraph, parent: OrgRef, child: OrgRef, source_id: int | None, role: Role) -> None:
        if graph.has_edge(parent, child, key=BRANCH_EDGE):
            return
        graph.add_edge(parent, child, key=BRANCH_EDGE, parent=parent, child=child, source_id=source_id, role=role)

    @staticmethod
    def _edges(graph: nx.MultiGraph, ref: OrgRef | None, key: str) -> list[tuple[OrgRef, dict]]:
        if ref is None or ref not in graph:
            return []
        return [(other, data) for _, other, edge_key, data in graph.edges(ref, keys=True, data=True) if edge_key == key]

    def _neighbors(self, graph: nx.MultiGraph, ref: OrgRef | None, key: str) -> set[OrgRef]:
        return {other for other, _ in self._edges(graph, ref, key)}

    def _children(self, graph: nx.MultiGraph, ref: OrgRef | None) -> set[OrgRef]:
        return {other for other, data in self._edges(graph, ref, BRANCH_EDGE) if data["parent"] == ref}

    def _parent(self, graph: nx.MultiGraph, ref: OrgRef | None) -> OrgRef | None:
        parents = sorted(other for other, data in self._edges(graph, ref, BRANCH_EDGE) if data["child"] == ref)
        return parents[0] if parents else None

    # === Views ===

    def _partners_view(self, graph: nx.MultiGraph, ref: OrgRef | None) -> tuple[Relationship, ...]:
        """Partners, then sub-organizations, then the parent, each sorted by organization"""

        def relationship(other: OrgRef, data: dict, relation: RelationKind) -> Relationship:
            return Relationship(data["source_id"], relation, other, graph.nodes[other]["name"], data["role"])

        partner_edges = sorted(self._edges(graph, ref, PARTNER_EDGE), key=lambda edge: edge[0])
        branch_edges = sorted(self._edges(graph, ref, BRANCH_EDGE), key=lambda edge: edge[0])

        view = [relationship(other, data, RelationKind.PARTNER) for other, data in partner_edges]
        view += [
            relationship(other, data, RelationKind.SUB_ORGANIZATION)
            for other, data in branch_edges
            if data["parent"] == ref
        ]
        view += [relationship(other, data, RelationKind.PARENT) for other, data in branch_edges if data["child"] == ref]
        return tuple(view)

    def _network_members(self, snapshot: Snapshot, actor: ActorContext, graph: nx.MultiGraph) -> tuple[Member, ...]:
        """Members visible to the actor, de-duplicated by id.

        Organizations see members of member-sharing partners and of their
        confirmed branches. A member is attributed by organization refs, or
        by organization names when the payload carried no refs. Members that
        cannot be attributed either way are kept, since the network endpoint
        already scoped them to the actor. Personal users see everything the
        network endpoint returned for them.
        """
        ref = actor.org_ref
        if ref is None:
            if not actor.is_personal_user:
                return ()
            return merge_members(snapshot.network_members)

        visible = {other for other, data in self._edges(graph, ref, PARTNER_EDGE) if data["share_members"]}
        visible |= self._children(graph, ref)

        reachable: list[Member] = []
        for member in snapshot.network_members:
            organizations = set(member.organization_refs) or _refs_by_name(graph, member.known_organizations)
            if not organizations:
                logger.warning(f"Network member {member.id} cannot be attributed to an organization, keeping it")
                reachable.append(member)
            elif organizations & visible:
                reachable.append(member)
        return merge_members(reachable)

    def _pending_items(
        self, snapshot: Snapshot, actor: ActorContext, classifier: RequestClassifier
    ) -> tuple[tuple[PendingItem, ...], tuple[PendingItem, ...]]:
        """Split pending requests into (received, sent) for the actor"""
        received: list[PendingItem] = []
        sent: list[PendingItem] = []
        ref = actor.org_ref

        def place(item: PendingItem) -> None:
            if item.role is Role.RECIPIENT:
                received.append(item)
            elif item.role is Role.INITIATOR:
                sent.append(item)

        if ref is not None:
            for partnership in snapshot.partnerships:
                counterpart = partnership.counterpart_of(ref)
                if partnership.status is not RelationshipStatus.PENDING or counterpart is None:
                    continue
                classification = classifier.classify(partnership, actor)
                place(
                    PendingItem(
                        entity_type=EntityType.PARTNERSHIP,
                        id=partnership.id,
                        role=classification.role,
                        counterpart_name=counterpart.name or str(counterpart.ref),
                        eligible_actions=classification.eligible_actions,
                        counterpart=counterpart.ref,
                    )
                )

            for request in snapshot.branch_requests:
                side = request.side_of(ref)
                if request.status is not RelationshipStatus.PENDING or side is None:
                    continue
                classification = classifier.classify(request, actor)
                other = request.org_on(side.opposite)
                place(
                    PendingItem(
                        entity_type=EntityType.BRANCH_REQUEST,
                        id=request.id,
                        role=classification.role,
                        counterpart_name=other.name or str(other.ref),
                        eligible_actions=classification.eligible_actions,
                        counterpart=other.ref,
                    )
                )

        for membership in snapshot.membership_requests:
            if membership.status is not RelationshipStatus.PENDING:
                continue
            classification = classifier.classify(membership, actor)
            place(_membership_item(membership, classification.role, classification.eligible_actions))

        return tuple(received), tuple(sent)


def _refs_by_name(graph: nx.MultiGraph, names: Iterable[str]) -> set[OrgRef]:
    wanted = {name.casefold() for name in names if name}
    return {node for node, name in graph.nodes(data="name") if name and name.casefold() in wanted}


def _membership_item(request: MembershipRequest, role: Role, actions: frozenset) -> PendingItem:
    if role is Role.RECIPIENT:
        # The counterpart is the requesting user, not an organization
        return PendingItem(
            entity_type=EntityType.MEMBERSHIP_REQUEST,
            id=request.id,
            role=role,
            counterpart_name=request.user_name or f"user {request.user_id}",
            eligible_actions=actions,
        )
    return PendingItem(
        entity_type=EntityType.MEMBERSHIP_REQUEST,
        id=request.id,
        role=role,
        counterpart_name=request.org_name or str(request.org_ref),
        eligible_actions=actions,
        counterpart=request.org_ref,
    )


def merge_members(members: Iterable[Member]) -> tuple[Member, ...]:
    """De-duplicate members by id in first-seen order.

    A later record of the same member is merged over the earlier one:
    non-empty fields from the later record win, organization lists are
    unioned.
    """
    merged: dict[int, Member] = {}
    for member in members:
        existing = merged.get(member.id)
        merged[member.id] = member if existing is None else existing.merged_with(member)
    return tuple(merged.values())
