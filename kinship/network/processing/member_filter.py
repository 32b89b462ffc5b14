"""Member and organization filtering for the network view.

A MemberFilter is a conjunction of optional criteria; unset criteria match
everything, so an empty filter returns its input unchanged. All text
comparisons use str.casefold().
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field

from ..core.constants import AVAILABILITY_VALUES, AVAILABLE_ANY
from ..core.models import Member, Organization, OrgKind

logger = logging.getLogger(__name__)

Filterable = Member | Organization


@dataclass(frozen=True)
class MemberFilter:
    """Compound predicate over members or organizations.

    Attributes:
        skill: Substring of any skill name
        availability: Days of which at least one must be available;
            ``available`` matches anyone with some availability
        organization: Exact name of one of the member's organizations
        offers_internship: Only entities taking trainees
        offers_workshop: Only entities proposing workshops
        text: Substring of the name, email or organization names
    """

    skill: str = ""
    availability: frozenset[str] = field(default_factory=frozenset)
    organization: str = ""
    offers_internship: bool = False
    offers_workshop: bool = False
    text: str = ""

    def __post_init__(self) -> None:
        days = frozenset(day.casefold() for day in self.availability)
        unknown = days - AVAILABILITY_VALUES
        if unknown:
            raise ValueError(f"Unknown availability values: {sorted(unknown)}")
        object.__setattr__(self, "availability", days)

    @property
    def is_empty(self) -> bool:
        return not (
            self.skill.strip()
            or self.availability
            or self.organization.strip()
            or self.offers_internship
            or self.offers_workshop
            or self.text.strip()
        )

    @property
    def company_only(self) -> bool:
        """Internship and workshop offers only exist for companies"""
        return self.offers_internship or self.offers_workshop


class FilterEngine:
    """Applies MemberFilter predicates to member or organization lists"""

    def apply(self, items: Iterable[Filterable], predicate: MemberFilter) -> tuple[Filterable, ...]:
        """Return the items matching every criterion, in input order"""
        items = tuple(items)
        if predicate.is_empty:
            return items
        matched = tuple(item for item in items if self.matches(item, predicate))
        logger.debug(f"Filter kept {len(matched)} of {len(items)} entries")
        return matched

    def matches(self, item: Filterable, predicate: MemberFilter) -> bool:
        if predicate.company_only and item.kind is OrgKind.SCHOOL:
            return False
        if predicate.offers_internship and not item.take_trainee:
            return False
        if predicate.offers_workshop and not item.propose_workshop:
            return False

        skill = predicate.skill.strip().casefold()
        if skill and not any(skill in name.casefold() for name in _skills_of(item)):
            return False

        if predicate.availability and not _available(_availability_of(item), predicate.availability):
            return False

        organization = predicate.organization.strip().casefold()
        if organization and organization not in {name.casefold() for name in _organizations_of(item)}:
            return False

        text = predicate.text.strip().casefold()
        if text and not any(text in value.casefold() for value in _searchable_text(item)):
            return False

        return True


def _available(available: tuple[str, ...], wanted: frozenset[str]) -> bool:
    days = {day.casefold() for day in available}
    if AVAILABLE_ANY in wanted and days:
        return True
    return bool(days & wanted)


def _skills_of(item: Filterable) -> tuple[str, ...]:
    return item.skills if isinstance(item, Member) else ()


def _availability_of(item: Filterable) -> tuple[str, ...]:
    return item.availability if isinstance(item, Member) else ()


def _organizations_of(item: Filterable) -> tuple[str, ...]:
    if isinstance(item, Member):
        return item.known_organizations
    return (item.name,)


def _searchable_text(item: Filterable) -> tuple[str, ...]:
    if isinstance(item, Member):
        return (item.full_name, item.email, *item.organizations, *item.common_organizations)
    return (item.name, item.location, item.email)
