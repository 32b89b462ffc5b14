#!/usr/bin/env python3
"""Network Summary - print the relationship dashboard for one actor.

Refreshes every snapshot slice for the actor, then prints the aggregate
counts, the partners view and the pending requests in both directions.

Usage:
    uv run python scripts/network_summary.py --org-id 10 --org-kind company
    uv run python scripts/network_summary.py --user-id 7 --search "lycee"
    uv run python scripts/network_summary.py --org-id 20 --org-kind school --stats-output /tmp/network.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from kinship.logging_config import configure_logging, get_logger
from kinship.network import ActorContext, NetworkError, NetworkView, OrgKind, WorkflowOrchestrator
from kinship.network.data import KinshipApiClient
from kinship.settings import get_settings

logger = get_logger(__name__)


def parse_args(args: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Print the relationship network summary for an actor")

    parser.add_argument("--org-id", type=int, help="Organization to act for")
    parser.add_argument(
        "--org-kind",
        choices=[kind.value for kind in OrgKind],
        help="Kind of the organization (required with --org-id)",
    )
    parser.add_argument("--user-id", type=int, help="Logged-in user (personal actor when no organization is given)")
    parser.add_argument("--search", type=str, help="Also search the catalog and show eligible actions")
    parser.add_argument("--stats-output", type=str, help="Write JSON counts to this file")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    parsed = parser.parse_args(args)
    if parsed.org_id is not None and parsed.org_kind is None:
        parser.error("--org-kind is required with --org-id")
    if parsed.org_id is None and parsed.user_id is None:
        parser.error("either --org-id/--org-kind or --user-id is required")
    return parsed


def build_actor(args: argparse.Namespace) -> ActorContext:
    if args.org_id is not None:
        return ActorContext(org_id=args.org_id, org_kind=OrgKind(args.org_kind), user_id=args.user_id)
    return ActorContext(user_id=args.user_id)


def view_stats(view: NetworkView) -> dict[str, Any]:
    return {
        "confirmed_partner_count": view.confirmed_partner_count,
        "confirmed_branch_count": view.confirmed_branch_count,
        "network_member_count": len(view.network_members),
        "pending_received_count": view.pending_received_count,
        "pending_sent_count": len(view.pending_sent),
        "partnership_total": view.partnership_total,
    }


def print_view(actor: ActorContext, view: NetworkView) -> None:
    print(f"\nNetwork summary for {actor}")
    print(f"  - Confirmed partners: {view.confirmed_partner_count}")
    print(f"  - Confirmed branches: {view.confirmed_branch_count}")
    print(f"  - Network members: {len(view.network_members)}")
    print(f"  - Partnerships (all statuses): {view.partnership_total}")

    if view.partners_view:
        print("\nRelationships:")
        for relationship in view.partners_view:
            print(f"  - {relationship.relation.value}: {relationship.name or relationship.organization}")

    for title, items in (("Pending received", view.pending_received), ("Pending sent", view.pending_sent)):
        print(f"\n{title}: {len(items)}")
        for item in items:
            actions = ", ".join(sorted(action.value for action in item.eligible_actions)) or "none"
            print(f"  - {item.entity_type.value} #{item.id} with {item.counterpart_name} (actions: {actions})")


async def run(args: argparse.Namespace) -> NetworkView:
    actor = build_actor(args)
    settings = get_settings()
    orchestrator = WorkflowOrchestrator(KinshipApiClient.from_settings(settings), actor, max_pages=settings.max_pages)

    view = await orchestrator.refresh_all()
    print_view(actor, view)

    if args.search:
        catalog = await orchestrator.search_organizations(args.search)
        print(f"\nCatalog results for '{args.search}': {catalog.total_count}")
        for organization, classification in catalog.entries:
            actions = ", ".join(sorted(action.value for action in classification.eligible_actions)) or "none"
            print(f"  - {organization.kind.value} {organization.name} (actions: {actions})")

    return view


def main() -> None:
    """Main entry point."""
    args = parse_args()

    log_level = logging.DEBUG if args.debug else logging.INFO
    configure_logging("network", log_level)

    try:
        view = asyncio.run(run(args))
    except NetworkError as e:
        logger.error(f"Network summary failed: {e}")
        print(f"\n{e.user_message}")
        sys.exit(1)

    if args.stats_output:
        with open(args.stats_output, "w") as f:
            json.dump(view_stats(view), f)
        logger.info(f"Wrote stats to {args.stats_output}")


if __name__ == "__main__":
    main()
