"""Data access: REST client, payload decoding and the relationship snapshot."""

from __future__ import annotations

from .api_client import KinshipApiClient
from .repository import RelationshipRepository, Slice

__all__ = [
    "KinshipApiClient",
    "RelationshipRepository",
    "Slice",
]
