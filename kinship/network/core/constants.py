"""Shared constants for the network engine."""

from __future__ import annotations

# Day flags of a member's availability payload, in display order
AVAILABILITY_DAYS: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
    "other",
)

# Catch-all used when a member is available but no specific day is set
AVAILABLE_ANY = "available"

AVAILABILITY_VALUES: frozenset[str] = frozenset(AVAILABILITY_DAYS) | {AVAILABLE_ANY}

# Organization roles allowed to act on behalf of an organization
ADMIN_ROLES: frozenset[str] = frozenset({"admin", "superadmin"})

# HTTP status groups used to classify remote failures
AUTHORIZATION_STATUSES: frozenset[int] = frozenset({401, 403})
VALIDATION_STATUSES: frozenset[int] = frozenset({400, 409, 422})
NOT_FOUND_STATUS = 404

# Marker the server uses in 403 messages for superadmin-only operations
SUPERADMIN_MARKER = "superadmin"

# User-facing messages
GENERIC_FAILURE_MESSAGE = "The request could not be completed. Please try again."
INSUFFICIENT_PRIVILEGE_MESSAGE = "You do not have sufficient privileges to perform this action."
