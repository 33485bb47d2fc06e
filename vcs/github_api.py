"""GitHub REST client.

A thin async wrapper over the handful of GitHub endpoints the bridge uses.
Each method maps to exactly one endpoint and raises GitHubApiError on a
non-2xx response; deciding what a failure means is the provider's job.

The underlying httpx.AsyncClient is shared and owned by the composition
root. The installation token is per-instance and sent per request, so
instances for different repositories never share credentials.

GitHub REST reference: https://docs.github.com/rest
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

GITHUB_API_VERSION = "2022-11-28"
DEFAULT_HEADERS = {
    "Accept": "application/vnd.github+json",
    "X-GitHub-Api-Version": GITHUB_API_VERSION,
}


class GitHubApiError(Exception):
    """A GitHub REST call returned a non-2xx status.

    Attributes:
        status: HTTP status code.
        message: GitHub's error message, or the reason phrase.
        request_id: Value of X-GitHub-Request-Id, for support tickets.
    """

    def __init__(self, status: int, message: str, request_id: str | None = None):
        super().__init__(f"GitHub API {status}: {message}")
        self.status = status
        self.message = message
        self.request_id = request_id


def raise_for_github_status(response: httpx.Response) -> None:
    """Raise GitHubApiError unless the response is 2xx."""
    if response.is_success:
        return
    message = response.reason_phrase
    try:
        payload = response.json()
        if isinstance(payload, dict) and payload.get("message"):
            message = payload["message"]
    except ValueError:
        pass
    raise GitHubApiError(
        status=response.status_code,
        message=message,
        request_id=response.headers.get("x-github-request-id"),
    )


class GitHubApi:
    """Installation-authenticated GitHub REST calls.

    Attributes:
        token: Installation access token sent as a Bearer credential.
    """

    def __init__(self, http: httpx.AsyncClient, token: str) -> None:
        self._http = http
        self.token = token

    async def merge_pull(
        self,
        owner: str,
        repo: str,
        number: int,
        *,
        merge_method: str = "merge",
        commit_title: str | None = None,
        commit_message: str | None = None,
    ) -> dict:
        """PUT /repos/{owner}/{repo}/pulls/{number}/merge."""
        body: dict[str, Any] = {"merge_method": merge_method}
        if commit_title is not None:
            body["commit_title"] = commit_title
        if commit_message is not None:
            body["commit_message"] = commit_message
        response = await self._request("PUT", f"/repos/{owner}/{repo}/pulls/{number}/merge", json=body)
        return response.json()

    async def add_collaborator(self, owner: str, repo: str, username: str, permission: str) -> int:
        """PUT /repos/{owner}/{repo}/collaborators/{username}.

        Returns 201 when an invitation was created and 204 when an existing
        collaborator's permission was updated.
        """
        response = await self._request(
            "PUT",
            f"/repos/{owner}/{repo}/collaborators/{username}",
            json={"permission": permission},
        )
        return response.status_code

    async def is_collaborator(self, owner: str, repo: str, username: str) -> bool:
        """GET /repos/{owner}/{repo}/collaborators/{username} (204 or 404)."""
        try:
            await self._request("GET", f"/repos/{owner}/{repo}/collaborators/{username}")
        except GitHubApiError as exc:
            if exc.status == 404:
                return False
            raise
        return True

    async def remove_collaborator(self, owner: str, repo: str, username: str) -> int:
        """DELETE /repos/{owner}/{repo}/collaborators/{username}."""
        response = await self._request("DELETE", f"/repos/{owner}/{repo}/collaborators/{username}")
        return response.status_code

    async def list_invitations(self, owner: str, repo: str) -> list[dict]:
        """GET /repos/{owner}/{repo}/invitations, following every page."""
        invitations: list[dict] = []
        url: str | None = f"/repos/{owner}/{repo}/invitations"
        params: dict[str, Any] | None = {"per_page": 100}
        while url:
            response = await self._request("GET", url, params=params)
            invitations.extend(response.json())
            # The next link already carries its query string.
            url = response.links.get("next", {}).get("url")
            params = None
        return invitations

    async def cancel_invitation(self, owner: str, repo: str, invitation_id: int) -> int:
        """DELETE /repos/{owner}/{repo}/invitations/{invitation_id}."""
        if invitation_id <= 0:
            raise ValueError("Invitation ID must be a positive number")
        response = await self._request("DELETE", f"/repos/{owner}/{repo}/invitations/{invitation_id}")
        return response.status_code

    # ── Private ───────────────────────────────────────────────────────────────

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**DEFAULT_HEADERS, "Authorization": f"Bearer {self.token}"}
        response = await self._http.request(method, url, headers=headers, **kwargs)
        logger.debug("%s %s -> %d", method, url, response.status_code)
        raise_for_github_status(response)
        return response
