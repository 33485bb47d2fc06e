"""VCS provider factory.

The single authentication boundary of the service. create_provider() runs,
in order:

    1. authorize() — fail fast if the DAO may not touch the repository
    2. credential scope — resolve the GitHub App installation
    3. client — mint an installation token scoped to the repository
    4. wrap — return a VcsProvider exposing the three operations

Hosts that are modelled but not built yet (GitLab, Radicle) raise
UnimplementedProviderError so callers can report a configuration gap
rather than a transient failure.
"""

import logging

import httpx

from auth.github_app import GitHubAppAuth
from auth.policy import AllowlistStore, authorize
from schemas.repo import RepoRef, is_supported_host
from schemas.signal import Vcs
from vcs.base import VcsProvider
from vcs.github import GitHubVcsProvider
from vcs.github_api import GitHubApi

logger = logging.getLogger(__name__)


class UnimplementedProviderError(Exception):
    """Raised for VCS types with no provider implementation."""


class VcsProviderFactory:
    """Builds authenticated, repository-scoped VcsProvider instances.

    Attributes:
        github_auth: Issues GitHub App installation tokens.
        allowlist: Store consulted by authorize(). None means allow-all.
    """

    def __init__(
        self,
        github_auth: GitHubAppAuth,
        http: httpx.AsyncClient,
        allowlist: AllowlistStore | None = None,
    ) -> None:
        self.github_auth = github_auth
        self.allowlist = allowlist
        self._http = http

    async def create_provider(self, vcs: Vcs, repo_ref: RepoRef, dao: str, chain_id: int) -> VcsProvider:
        """Authorize the DAO and return a provider for the repository.

        Raises:
            AuthorizationError: If the DAO is not allowed on the repository.
            InstallationNotFoundError: If no GitHub App installation covers it.
            GitHubApiError: If GitHub refuses to mint a token.
            UnimplementedProviderError: For gitlab, radicle and unknown values.
        """
        await authorize(dao, chain_id, vcs, repo_ref, store=self.allowlist)

        if vcs == Vcs.GITHUB:
            if not is_supported_host(repo_ref.host):
                logger.info("Treating %s as a GitHub Enterprise host.", repo_ref.host)
            installation_id = await self.github_auth.installation_id(dao, repo_ref)
            token = await self.github_auth.installation_token(installation_id, repo_ref)
            logger.info("GitHub provider ready for %s (installation %d).", repo_ref.full_name, installation_id)
            return GitHubVcsProvider(GitHubApi(self._http, token))

        if vcs == Vcs.GITLAB:
            raise UnimplementedProviderError("GitLab provider not implemented yet")
        if vcs == Vcs.RADICLE:
            raise UnimplementedProviderError("Radicle provider not implemented yet")
        raise UnimplementedProviderError(f"Unsupported VCS: {vcs}")
