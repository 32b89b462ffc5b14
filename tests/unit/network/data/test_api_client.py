"""Tests for the Kinship REST client."""

from __future__ import annotations

import json
from unittest.mock import Mock

import pytest
import requests

from kinship.network.core.errors import (
    AuthorizationError,
    NotFoundError,
    RequestValidationError,
    TransientError,
)
from kinship.network.core.models import OrgKind
from kinship.network.data.api_client import KinshipApiClient, error_for_response
from kinship.settings import Settings


def make_response(status_code: int = 200, body=None, text: str | None = None) -> requests.Response:
    """Build a real requests.Response with the given status and body."""
    response = requests.Response()
    response.status_code = status_code
    if text is not None:
        response._content = text.encode()
    elif body is not None:
        response._content = json.dumps(body).encode()
    else:
        response._content = b""
    response.url = "http://test/api/v1/x"
    return response


@pytest.fixture
def session():
    session = Mock(spec=requests.Session)
    session.request.return_value = make_response(200, {"data": []})
    return session


@pytest.fixture
def client(session):
    return KinshipApiClient("http://kinship.test/", token="secret", timeout=5, page_size=25, session=session)


def sent(session) -> dict:
    return session.request.call_args.kwargs


class TestRequests:
    """Paths, methods and headers sent to the service."""

    def test_list_partnerships(self, client, session):
        client.list_partnerships(10, OrgKind.COMPANY, status="pending", page=3)

        call = sent(session)
        assert call["method"] == "GET"
        assert call["url"] == "http://kinship.test/api/v1/companies/10/partnerships"
        assert call["params"] == {"page": 3, "per_page": 25, "status": "pending"}
        assert call["headers"]["Authorization"] == "Bearer secret"
        assert call["timeout"] == 5

    def test_create_partnership_wraps_payload(self, client, session):
        client.create_partnership(20, OrgKind.SCHOOL, {"partner_company_ids": [10]})

        call = sent(session)
        assert call["method"] == "POST"
        assert call["url"].endswith("/schools/20/partnerships")
        assert call["json"] == {"partnership": {"partner_company_ids": [10]}}
        assert call["headers"]["Content-Type"] == "application/json"

    @pytest.mark.parametrize(
        "method_name,http_method,suffix",
        [
            ("accept_partnership", "PATCH", "/partnerships/5/accept"),
            ("reject_partnership", "PATCH", "/partnerships/5/reject"),
            ("delete_partnership", "DELETE", "/partnerships/5"),
            ("confirm_branch_request", "PATCH", "/branch_requests/5/confirm"),
            ("reject_branch_request", "PATCH", "/branch_requests/5/reject"),
            ("delete_branch_request", "DELETE", "/branch_requests/5"),
            ("reject_member", "DELETE", "/members/5"),
        ],
    )
    def test_item_mutations(self, client, session, method_name, http_method, suffix):
        getattr(client, method_name)(10, OrgKind.COMPANY, 5)

        call = sent(session)
        assert call["method"] == http_method
        assert call["url"] == f"http://kinship.test/api/v1/companies/10{suffix}"

    def test_accept_member_sets_confirmed(self, client, session):
        client.accept_member(20, OrgKind.SCHOOL, 99)

        call = sent(session)
        assert call["method"] == "PUT"
        assert call["url"].endswith("/schools/20/members/99")
        assert call["json"] == {"status": "confirmed"}

    def test_join_endpoints(self, client, session):
        client.join_school(20)
        assert sent(session)["url"].endswith("/schools/20/join")
        client.join_company(10)
        assert sent(session)["url"].endswith("/companies/10/join")

    def test_network_members_flag(self, client, session):
        client.get_network_members(10, OrgKind.COMPANY, share_members=False)
        assert sent(session)["params"] == {"share_members": "false"}

    def test_search(self, client, session):
        client.search_organizations("lycee", page=2)

        call = sent(session)
        assert call["url"].endswith("/organizations/search")
        assert call["params"] == {"query": "lycee", "page": 2, "per_page": 25}

    def test_no_token_sends_no_authorization(self, session):
        KinshipApiClient("http://kinship.test", session=session).get_user_network_members()
        assert "Authorization" not in sent(session)["headers"]

    def test_from_settings(self):
        settings = Settings(kinship_api_url="http://remote/", kinship_api_token="t", page_size=10)
        client = KinshipApiClient.from_settings(settings)
        assert client.base_url == "http://remote"
        assert client.page_size == 10


class TestResponses:
    """Decoding bodies and mapping failures."""

    def test_returns_decoded_json(self, client, session):
        session.request.return_value = make_response(200, {"data": [{"id": 1}]})
        assert client.list_branch_requests(10, OrgKind.COMPANY) == {"data": [{"id": 1}]}

    def test_empty_body_returns_none(self, client, session):
        session.request.return_value = make_response(204)
        assert client.delete_partnership(10, OrgKind.COMPANY, 1) is None

    def test_undecodable_body_is_transient(self, client, session):
        session.request.return_value = make_response(200, text="<html>oops</html>")
        with pytest.raises(TransientError):
            client.list_branch_requests(10, OrgKind.COMPANY)

    def test_forbidden_maps_to_authorization_error(self, client, session):
        session.request.return_value = make_response(403, {"error": "Superadmin role required"})

        with pytest.raises(AuthorizationError) as exc_info:
            client.accept_partnership(10, OrgKind.COMPANY, 1)

        assert exc_info.value.status_code == 403
        assert exc_info.value.requires_superadmin
        assert exc_info.value.user_message == "Superadmin role required"

    def test_not_found(self, client, session):
        session.request.return_value = make_response(404, {"message": "Partnership not found"})
        with pytest.raises(NotFoundError, match="Partnership not found"):
            client.accept_partnership(10, OrgKind.COMPANY, 1)

    def test_validation_errors_dict(self, client, session):
        session.request.return_value = make_response(422, {"errors": {"parent": ["must be a company"]}})
        with pytest.raises(RequestValidationError, match="parent must be a company"):
            client.create_branch_request(10, OrgKind.COMPANY, {"parent_company_id": 20})

    def test_server_error_is_transient(self, client, session):
        session.request.return_value = make_response(502, text="Bad Gateway")
        with pytest.raises(TransientError, match="502"):
            client.list_sub_organizations(10, OrgKind.COMPANY)

    def test_connection_error_is_transient(self, client, session):
        session.request.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(TransientError, match="refused"):
            client.list_sub_organizations(10, OrgKind.COMPANY)

    def test_error_list_is_joined(self):
        response = make_response(400, {"errors": ["name is blank", "kind is invalid"]})
        error = error_for_response(response)
        assert isinstance(error, RequestValidationError)
        assert str(error) == "name is blank; kind is invalid"
