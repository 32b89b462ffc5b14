"""Kinship REST client for relationship, request and network endpoints.

Thin transport only: every method returns the decoded JSON body and maps
HTTP failures onto the engine's error taxonomy. No retries are attempted;
a failed call is surfaced to the caller, who may re-invoke the action.
"""

from __future__ import annotations

import logging
import time
from typing import Any

import requests

from kinship.logging_config import TRACE
from kinship.settings import Settings, get_settings

from ..core.constants import (
    AUTHORIZATION_STATUSES,
    GENERIC_FAILURE_MESSAGE,
    NOT_FOUND_STATUS,
    VALIDATION_STATUSES,
)
from ..core.errors import (
    AuthorizationError,
    NetworkError,
    NotFoundError,
    RequestValidationError,
    TransientError,
)
from ..core.models import OrgKind

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _error_message(response: requests.Response) -> str:
    """Extract the server's message from an error response."""
    try:
        body = response.json()
    except ValueError:
        return response.text or GENERIC_FAILURE_MESSAGE

    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
        errors = body.get("errors")
        if isinstance(errors, list) and errors:
            return "; ".join(str(error) for error in errors)
        if isinstance(errors, dict) and errors:
            parts = []
            for field, messages in errors.items():
                if isinstance(messages, list):
                    messages = ", ".join(str(message) for message in messages)
                parts.append(f"{field} {messages}")
            return "; ".join(parts)
    return response.text or GENERIC_FAILURE_MESSAGE


def error_for_response(response: requests.Response) -> NetworkError:
    """Map an HTTP error response onto the error taxonomy."""
    status = response.status_code
    message = _error_message(response)
    if status in AUTHORIZATION_STATUSES:
        return AuthorizationError(message, status_code=status)
    if status == NOT_FOUND_STATUS:
        return NotFoundError(message, status_code=status)
    if status in VALIDATION_STATUSES:
        return RequestValidationError(message, status_code=status)
    return TransientError(f"Server error {status}: {message}", status_code=status)


class KinshipApiClient:
    """Client for the Kinship REST service."""

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout: float = 15.0,
        page_size: int = 50,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.page_size = page_size
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> KinshipApiClient:
        settings = settings or get_settings()
        return cls(
            base_url=settings.kinship_api_url,
            token=settings.kinship_api_token,
            timeout=settings.request_timeout_seconds,
            page_size=settings.page_size,
        )

    def _make_request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
    ) -> Any:
        """Send one authenticated request and return the decoded body.

        Raises:
            AuthorizationError: 401/403
            NotFoundError: 404
            RequestValidationError: 400/409/422
            TransientError: connection failures, timeouts, other statuses,
                undecodable bodies
        """
        url = f"{self.base_url}{API_PREFIX}{path}"
        headers = {
            "Accept": "application/json",
            "X-Request-ID": f"REQ-{path.strip('/').replace('/', '-')}-{int(time.time())}",
        }
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        if data is not None:
            headers["Content-Type"] = "application/json"

        logger.log(TRACE, f"{method} {path} params={params} body={data}")

        try:
            response = self.session.request(
                method=method, url=url, headers=headers, params=params, json=data, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            error = error_for_response(e.response)
            logger.warning(f"{method} {path} failed with {e.response.status_code}: {error}")
            raise error from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"{method} {path} failed: {e}")
            raise TransientError(f"Request error: {e}") from e

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise TransientError(f"Undecodable response from {method} {path}") from e

    @staticmethod
    def _org_path(org_id: int, org_kind: OrgKind) -> str:
        return f"/{org_kind.path_segment}/{org_id}"

    # === Partnerships ===

    def list_partnerships(
        self, org_id: int, org_kind: OrgKind, status: str | None = None, page: int = 1
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"page": page, "per_page": self.page_size}
        if status:
            params["status"] = status
        return self._make_request("GET", f"{self._org_path(org_id, org_kind)}/partnerships", params=params)

    def create_partnership(self, org_id: int, org_kind: OrgKind, payload: dict[str, Any]) -> dict[str, Any]:
        return self._make_request(
            "POST", f"{self._org_path(org_id, org_kind)}/partnerships", data={"partnership": payload}
        )

    def accept_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any:
        return self._make_request("PATCH", f"{self._org_path(org_id, org_kind)}/partnerships/{partnership_id}/accept")

    def reject_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any:
        return self._make_request("PATCH", f"{self._org_path(org_id, org_kind)}/partnerships/{partnership_id}/reject")

    def delete_partnership(self, org_id: int, org_kind: OrgKind, partnership_id: int) -> Any:
        return self._make_request("DELETE", f"{self._org_path(org_id, org_kind)}/partnerships/{partnership_id}")

    # === Branch requests ===

    def list_branch_requests(self, org_id: int, org_kind: OrgKind) -> Any:
        return self._make_request("GET", f"{self._org_path(org_id, org_kind)}/branch_requests")

    def create_branch_request(self, org_id: int, org_kind: OrgKind, payload: dict[str, Any]) -> Any:
        return self._make_request(
            "POST", f"{self._org_path(org_id, org_kind)}/branch_requests", data={"branch_request": payload}
        )

    def confirm_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any:
        return self._make_request("PATCH", f"{self._org_path(org_id, org_kind)}/branch_requests/{request_id}/confirm")

    def reject_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any:
        return self._make_request("PATCH", f"{self._org_path(org_id, org_kind)}/branch_requests/{request_id}/reject")

    def delete_branch_request(self, org_id: int, org_kind: OrgKind, request_id: int) -> Any:
        return self._make_request("DELETE", f"{self._org_path(org_id, org_kind)}/branch_requests/{request_id}")

    def list_sub_organizations(self, org_id: int, org_kind: OrgKind) -> dict[str, Any]:
        return self._make_request("GET", f"{self._org_path(org_id, org_kind)}/branches")

    # === Membership ===

    def list_membership_requests(self, user_id: int) -> dict[str, Any]:
        return self._make_request("GET", f"/users/{user_id}/membership_requests")

    def join_school(self, org_id: int) -> Any:
        return self._make_request("POST", f"/schools/{org_id}/join")

    def join_company(self, org_id: int) -> Any:
        return self._make_request("POST", f"/companies/{org_id}/join")

    def list_pending_members(self, org_id: int, org_kind: OrgKind) -> Any:
        return self._make_request("GET", f"{self._org_path(org_id, org_kind)}/members", params={"status": "pending"})

    def accept_member(self, org_id: int, org_kind: OrgKind, member_id: int) -> Any:
        return self._make_request(
            "PUT", f"{self._org_path(org_id, org_kind)}/members/{member_id}", data={"status": "confirmed"}
        )

    def reject_member(self, org_id: int, org_kind: OrgKind, member_id: int) -> Any:
        return self._make_request("DELETE", f"{self._org_path(org_id, org_kind)}/members/{member_id}")

    # === Network and catalog ===

    def get_network_members(self, org_id: int, org_kind: OrgKind, share_members: bool = True) -> Any:
        return self._make_request(
            "GET",
            f"{self._org_path(org_id, org_kind)}/network_members",
            params={"share_members": str(share_members).lower()},
        )

    def get_user_network_members(self) -> Any:
        return self._make_request("GET", "/users/me/network_members")

    def search_organizations(self, query: str, page: int = 1) -> dict[str, Any]:
        return self._make_request(
            "GET", "/organizations/search", params={"query": query, "page": page, "per_page": self.page_size}
        )
