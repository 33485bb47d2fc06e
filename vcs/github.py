"""GitHub VcsProvider.

Implements the three VcsProvider operations on top of GitHubApi.

Revoking access needs care: on GitHub, granting a permission to a
non-member creates a pending invitation, not a collaborator. A user being
revoked may therefore be an active collaborator, a pending invitee, or
briefly both. revoke_collaborator() always walks both paths:

    1. If the user is an active collaborator, remove them. "Not a
       collaborator" is expected; other failures are logged and do not
       stop step 2.
    2. List pending invitations and cancel the one addressed to the user.
    3. Succeed if either path removed something. If neither found the
       user, fail with a "not found" error.
"""

import logging

import httpx

from schemas.params import GrantCollaboratorParams, MergeChangeParams, RevokeCollaboratorParams
from schemas.repo import RepoRef
from schemas.result import GrantResult, MergeResult, RevokeResult
from vcs.base import VcsProvider
from vcs.github_api import GitHubApi, GitHubApiError

logger = logging.getLogger(__name__)


class GitHubVcsProvider(VcsProvider):
    """VcsProvider backed by an installation-authenticated GitHubApi."""

    name = "github"

    def __init__(self, api: GitHubApi) -> None:
        self._api = api

    async def merge_change(
        self, repo_ref: RepoRef, change_number: int, params: MergeChangeParams
    ) -> MergeResult:
        try:
            data = await self._api.merge_pull(
                repo_ref.owner,
                repo_ref.repo,
                change_number,
                merge_method=params.merge_method,
                commit_title=params.commit_title,
                commit_message=params.commit_message,
            )
        except GitHubApiError as exc:
            logger.error(
                "PR merge failed for %s#%d: %s (request %s)",
                repo_ref.full_name, change_number, exc.message, exc.request_id,
            )
            return MergeResult(success=False, error=exc.message, status=exc.status)
        except httpx.HTTPError as exc:
            logger.error("PR merge failed for %s#%d: %s", repo_ref.full_name, change_number, exc)
            return MergeResult(success=False, error=str(exc) or type(exc).__name__)

        logger.info(
            "PR merge succeeded for %s#%d: sha=%s merged=%s",
            repo_ref.full_name, change_number, data.get("sha"), data.get("merged"),
        )
        return MergeResult(
            success=True,
            sha=data.get("sha"),
            merged=data.get("merged"),
            message=data.get("message"),
            status=200,
        )

    async def grant_collaborator(
        self, repo_ref: RepoRef, username: str, params: GrantCollaboratorParams
    ) -> GrantResult:
        try:
            status = await self._api.add_collaborator(
                repo_ref.owner, repo_ref.repo, username, params.permission
            )
        except GitHubApiError as exc:
            logger.error(
                "Add collaborator %s to %s failed: %s (request %s)",
                username, repo_ref.full_name, exc.message, exc.request_id,
            )
            return GrantResult(success=False, username=username, error=exc.message, status=exc.status)
        except httpx.HTTPError as exc:
            logger.error("Add collaborator %s to %s failed: %s", username, repo_ref.full_name, exc)
            return GrantResult(success=False, username=username, error=str(exc) or type(exc).__name__)

        # 201 means an invitation was sent; 204 means an existing
        # collaborator's permission changed.
        logger.info(
            "Granted %s to %s on %s (status %d).", params.permission, username, repo_ref.full_name, status
        )
        return GrantResult(success=True, username=username, permission=params.permission, status=status)

    async def revoke_collaborator(
        self, repo_ref: RepoRef, username: str, params: RevokeCollaboratorParams
    ) -> RevokeResult:
        owner, repo = repo_ref.owner, repo_ref.repo
        collaborator_removed = False
        invitation_cancelled = False
        invitation_id: int | None = None
        status: int | None = None
        problems: list[str] = []

        # Step 1: active collaborator.
        try:
            if await self._api.is_collaborator(owner, repo, username):
                status = await self._api.remove_collaborator(owner, repo, username)
                collaborator_removed = True
                logger.info("Removed collaborator %s from %s.", username, repo_ref.full_name)
            else:
                logger.info("%s is not an active collaborator on %s.", username, repo_ref.full_name)
        except GitHubApiError as exc:
            if exc.status == 404:
                logger.info("%s is not an active collaborator on %s.", username, repo_ref.full_name)
            else:
                logger.warning(
                    "Removing collaborator %s from %s failed: %s", username, repo_ref.full_name, exc
                )
                problems.append(f"remove collaborator: {exc.message}")
                status = exc.status
        except httpx.HTTPError as exc:
            logger.warning("Removing collaborator %s from %s failed: %s", username, repo_ref.full_name, exc)
            problems.append(f"remove collaborator: {exc}")

        # Step 2: pending invitation. Runs regardless of step 1.
        try:
            invitations = await self._api.list_invitations(owner, repo)
            invitation = _find_invitation(invitations, username)
            if invitation is not None:
                status = await self._api.cancel_invitation(owner, repo, int(invitation["id"]))
                invitation_cancelled = True
                invitation_id = int(invitation["id"])
                logger.info(
                    "Cancelled invitation %d for %s on %s.", invitation_id, username, repo_ref.full_name
                )
        except GitHubApiError as exc:
            logger.warning("Cancelling invitation for %s on %s failed: %s", username, repo_ref.full_name, exc)
            problems.append(f"cancel invitation: {exc.message}")
            status = status or exc.status
        except httpx.HTTPError as exc:
            logger.warning("Cancelling invitation for %s on %s failed: %s", username, repo_ref.full_name, exc)
            problems.append(f"cancel invitation: {exc}")

        if not (collaborator_removed or invitation_cancelled):
            error = f"User {username} not found as collaborator or pending invitation on {repo_ref.full_name}"
            if problems:
                error += f" ({'; '.join(problems)})"
            return RevokeResult(success=False, username=username, error=error, status=status)

        operation = "+".join(
            op for op, done in (
                ("collaborator_removed", collaborator_removed),
                ("invitation_cancelled", invitation_cancelled),
            ) if done
        )
        return RevokeResult(
            success=True,
            username=username,
            operation=operation,
            invitation_id=invitation_id,
            collaborator_removed=collaborator_removed,
            invitation_cancelled=invitation_cancelled,
            status=status,
        )


def _find_invitation(invitations: list[dict], username: str) -> dict | None:
    """The pending invitation addressed to username, if any. Logins are case-insensitive."""
    wanted = username.lower()
    for invitation in invitations:
        invitee = invitation.get("invitee") or {}
        if str(invitee.get("login", "")).lower() == wanted:
            return invitation
    return None
