"""Tests for the VCS layer.

GitHubApi runs against httpx.MockTransport. GitHubVcsProvider runs against
an in-memory fake of GitHubApi so the revoke reconciliation can be driven
through every combination of remote state.
"""

import json

import httpx
import pytest

from auth.policy import AuthorizationError
from schemas.params import GrantCollaboratorParams, MergeChangeParams, RevokeCollaboratorParams
from schemas.repo import parse_repo_ref
from schemas.signal import Vcs
from vcs.factory import UnimplementedProviderError, VcsProviderFactory
from vcs.github import GitHubVcsProvider
from vcs.github_api import GitHubApi, GitHubApiError

REPO = parse_repo_ref("https://github.com/cogni-dao/test-repo")
DAO = "0x" + "a" * 40


# ── Helpers ───────────────────────────────────────────────────────────────────

def make_api(handler, token: str = "ghs_test") -> GitHubApi:
    http = httpx.AsyncClient(base_url="https://api.github.com", transport=httpx.MockTransport(handler))
    return GitHubApi(http, token)


def invitation(invitation_id: int, login: str) -> dict:
    return {"id": invitation_id, "invitee": {"login": login}, "permissions": "admin"}


class FakeGitHubApi:
    """In-memory stand-in for GitHubApi.

    collaborators and invitations describe the remote state; every mutating
    call is recorded in .calls.
    """

    def __init__(self, collaborators=(), invitations=(), errors=None):
        self.collaborators = {c.lower() for c in collaborators}
        self.invitations = list(invitations)
        self.errors = errors or {}
        self.calls: list[tuple] = []

    def _maybe_fail(self, name):
        if name in self.errors:
            raise self.errors[name]

    async def merge_pull(self, owner, repo, number, *, merge_method="merge", commit_title=None, commit_message=None):
        self._maybe_fail("merge_pull")
        self.calls.append(("merge_pull", number, merge_method, commit_title, commit_message))
        return {"sha": "deadbeef", "merged": True, "message": "Pull Request successfully merged"}

    async def add_collaborator(self, owner, repo, username, permission):
        self._maybe_fail("add_collaborator")
        self.calls.append(("add_collaborator", username, permission))
        return 201

    async def is_collaborator(self, owner, repo, username):
        self._maybe_fail("is_collaborator")
        return username.lower() in self.collaborators

    async def remove_collaborator(self, owner, repo, username):
        self._maybe_fail("remove_collaborator")
        self.calls.append(("remove_collaborator", username))
        self.collaborators.discard(username.lower())
        return 204

    async def list_invitations(self, owner, repo):
        self._maybe_fail("list_invitations")
        return list(self.invitations)

    async def cancel_invitation(self, owner, repo, invitation_id):
        self._maybe_fail("cancel_invitation")
        self.calls.append(("cancel_invitation", invitation_id))
        self.invitations = [i for i in self.invitations if i["id"] != invitation_id]
        return 204


# ── GitHubApi ─────────────────────────────────────────────────────────────────

class TestGitHubApi:
    async def test_merge_pull_request_shape(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"sha": "abc123", "merged": True, "message": "merged"})

        data = await make_api(handler).merge_pull(
            "cogni-dao", "test-repo", 5, merge_method="squash", commit_title="t", commit_message="m"
        )
        assert data["sha"] == "abc123"
        assert seen == {
            "method": "PUT",
            "path": "/repos/cogni-dao/test-repo/pulls/5/merge",
            "auth": "Bearer ghs_test",
            "body": {"merge_method": "squash", "commit_title": "t", "commit_message": "m"},
        }

    async def test_error_carries_status_message_and_request_id(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                405,
                json={"message": "Pull Request is not mergeable"},
                headers={"x-github-request-id": "REQ-1"},
            )

        with pytest.raises(GitHubApiError) as exc_info:
            await make_api(handler).merge_pull("o", "r", 1)
        assert exc_info.value.status == 405
        assert exc_info.value.message == "Pull Request is not mergeable"
        assert exc_info.value.request_id == "REQ-1"

    async def test_add_collaborator_returns_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"permission": "admin"}
            return httpx.Response(201, json={"id": 1})

        assert await make_api(handler).add_collaborator("o", "r", "octocat", "admin") == 201

    @pytest.mark.parametrize("status, expected", [(204, True), (404, False)])
    async def test_is_collaborator(self, status, expected):
        assert await make_api(lambda request: httpx.Response(status)).is_collaborator("o", "r", "u") is expected

    async def test_is_collaborator_propagates_other_errors(self):
        with pytest.raises(GitHubApiError):
            await make_api(lambda request: httpx.Response(500)).is_collaborator("o", "r", "u")

    async def test_list_invitations_follows_pagination(self):
        pages = []

        def handler(request: httpx.Request) -> httpx.Response:
            pages.append(dict(request.url.params))
            if request.url.params.get("page") == "2":
                return httpx.Response(200, json=[invitation(2, "bob")])
            return httpx.Response(
                200,
                json=[invitation(1, "alice")],
                headers={"link": '<https://api.github.com/repos/o/r/invitations?per_page=100&page=2>; rel="next"'},
            )

        result = await make_api(handler).list_invitations("o", "r")
        assert [i["id"] for i in result] == [1, 2]
        assert pages == [{"per_page": "100"}, {"per_page": "100", "page": "2"}]

    async def test_cancel_invitation_rejects_non_positive_ids(self):
        with pytest.raises(ValueError, match="positive"):
            await make_api(lambda request: httpx.Response(204)).cancel_invitation("o", "r", 0)


# ── GitHubVcsProvider: merge and grant ────────────────────────────────────────

class TestGitHubProviderMergeAndGrant:
    async def test_merge_success(self):
        api = FakeGitHubApi()
        result = await GitHubVcsProvider(api).merge_change(REPO, 5, MergeChangeParams(merge_method="squash"))
        assert result.success is True
        assert result.sha == "deadbeef"
        assert api.calls == [("merge_pull", 5, "squash", None, None)]

    async def test_merge_failure_is_a_result(self):
        api = FakeGitHubApi(errors={"merge_pull": GitHubApiError(405, "Pull Request is not mergeable")})
        result = await GitHubVcsProvider(api).merge_change(REPO, 5, MergeChangeParams())
        assert result.success is False
        assert result.status == 405
        assert result.error == "Pull Request is not mergeable"

    async def test_merge_transport_failure_is_a_result(self):
        api = FakeGitHubApi(errors={"merge_pull": httpx.ConnectError("connection refused")})
        result = await GitHubVcsProvider(api).merge_change(REPO, 5, MergeChangeParams())
        assert result.success is False
        assert "connection refused" in result.error

    async def test_grant_success(self):
        api = FakeGitHubApi()
        result = await GitHubVcsProvider(api).grant_collaborator(REPO, "octocat", GrantCollaboratorParams())
        assert result.success is True
        assert result.permission == "admin"
        assert result.status == 201
        assert api.calls == [("add_collaborator", "octocat", "admin")]

    async def test_grant_failure_is_a_result(self):
        api = FakeGitHubApi(errors={"add_collaborator": GitHubApiError(422, "Validation Failed")})
        result = await GitHubVcsProvider(api).grant_collaborator(REPO, "octocat", GrantCollaboratorParams())
        assert result.success is False
        assert result.error == "Validation Failed"


# ── GitHubVcsProvider: revoke reconciliation ──────────────────────────────────

class TestRevokeReconciliation:
    async def test_pending_invitation_only(self):
        api = FakeGitHubApi(invitations=[invitation(11, "other"), invitation(12, "OctoCat")])
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is True
        assert result.collaborator_removed is False
        assert result.invitation_cancelled is True
        assert result.invitation_id == 12
        assert result.operation == "invitation_cancelled"
        assert api.calls == [("cancel_invitation", 12)]

    async def test_active_collaborator_only(self):
        api = FakeGitHubApi(collaborators=["octocat"])
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is True
        assert result.collaborator_removed is True
        assert result.invitation_cancelled is False
        assert result.operation == "collaborator_removed"

    async def test_both_states_are_cleared(self):
        api = FakeGitHubApi(collaborators=["octocat"], invitations=[invitation(12, "octocat")])
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is True
        assert result.collaborator_removed is True
        assert result.invitation_cancelled is True
        assert result.operation == "collaborator_removed+invitation_cancelled"
        assert api.calls == [("remove_collaborator", "octocat"), ("cancel_invitation", 12)]

    async def test_neither_state_is_not_found(self):
        api = FakeGitHubApi(invitations=[invitation(11, "other")])
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is False
        assert "not found as collaborator or pending invitation" in result.error
        assert api.calls == []

    async def test_remove_failure_does_not_stop_invitation_path(self):
        api = FakeGitHubApi(
            collaborators=["octocat"],
            invitations=[invitation(12, "octocat")],
            errors={"remove_collaborator": GitHubApiError(500, "Server Error")},
        )
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is True
        assert result.collaborator_removed is False
        assert result.invitation_cancelled is True

    async def test_collaborator_404_is_expected(self):
        api = FakeGitHubApi(errors={"is_collaborator": GitHubApiError(404, "Not Found")})
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is False
        assert "Not Found" not in result.error

    async def test_api_errors_are_reported_when_nothing_removed(self):
        api = FakeGitHubApi(errors={
            "is_collaborator": GitHubApiError(500, "Server Error"),
            "list_invitations": GitHubApiError(502, "Bad Gateway"),
        })
        result = await GitHubVcsProvider(api).revoke_collaborator(REPO, "octocat", RevokeCollaboratorParams())
        assert result.success is False
        assert "Server Error" in result.error
        assert "Bad Gateway" in result.error


# ── VcsProviderFactory ────────────────────────────────────────────────────────

class FakeAppAuth:
    def __init__(self):
        self.calls: list[tuple] = []

    async def installation_id(self, dao, repo_ref):
        self.calls.append(("installation_id", dao, repo_ref.full_name))
        return 99

    async def installation_token(self, installation_id, repo_ref=None):
        self.calls.append(("installation_token", installation_id, repo_ref.repo))
        return "ghs_scoped"


class DenyAll:
    async def is_allowlisted(self, dao, chain_id, vcs, host, owner, repo) -> bool:
        return False


class TestVcsProviderFactory:
    async def test_github_provider_is_built_with_scoped_token(self):
        auth = FakeAppAuth()
        factory = VcsProviderFactory(auth, httpx.AsyncClient())
        provider = await factory.create_provider(Vcs.GITHUB, REPO, DAO, 1)
        assert isinstance(provider, GitHubVcsProvider)
        assert provider.name == "github"
        assert auth.calls == [
            ("installation_id", DAO, "cogni-dao/test-repo"),
            ("installation_token", 99, "test-repo"),
        ]

    async def test_authorization_runs_before_credentials(self):
        auth = FakeAppAuth()
        factory = VcsProviderFactory(auth, httpx.AsyncClient(), allowlist=DenyAll())
        with pytest.raises(AuthorizationError):
            await factory.create_provider(Vcs.GITHUB, REPO, DAO, 1)
        assert auth.calls == []

    @pytest.mark.parametrize("vcs", [Vcs.GITLAB, Vcs.RADICLE])
    async def test_unimplemented_hosts(self, vcs):
        factory = VcsProviderFactory(FakeAppAuth(), httpx.AsyncClient())
        with pytest.raises(UnimplementedProviderError, match="not implemented"):
            await factory.create_provider(vcs, REPO, DAO, 1)
