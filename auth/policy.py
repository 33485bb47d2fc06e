"""DAO-to-repository authorization policy.

authorize() is the single place where the service decides whether a DAO may
act on a repository. The VCS provider factory calls it before resolving any
credentials; nothing else re-implements the check.

The decision is delegated to an AllowlistStore. The default store allows
everything, which is acceptable only while a single DAO and contract are
configured. A persistent store keyed by (dao, chain_id, vcs, host, owner,
repo) drops in without changing any caller.
"""

import logging
from typing import Protocol

from schemas.repo import RepoRef
from schemas.signal import Vcs

logger = logging.getLogger(__name__)


class AuthorizationError(Exception):
    """Raised when a DAO is not allowed to act on a repository."""


class AllowlistStore(Protocol):
    """Answers whether a DAO may act on one repository."""

    async def is_allowlisted(
        self, dao: str, chain_id: int, vcs: Vcs, host: str, owner: str, repo: str
    ) -> bool: ...


class AllowAllStore:
    """Allowlist that permits every DAO on every repository."""

    async def is_allowlisted(
        self, dao: str, chain_id: int, vcs: Vcs, host: str, owner: str, repo: str
    ) -> bool:
        return True


async def authorize(
    dao: str,
    chain_id: int,
    vcs: Vcs,
    repo_ref: RepoRef,
    store: AllowlistStore | None = None,
) -> None:
    """Check that a DAO may act on a repository.

    Args:
        dao: DAO address requesting access.
        chain_id: Chain the DAO lives on.
        vcs: Host family of the repository.
        repo_ref: Parsed repository reference.
        store: Allowlist to consult. Defaults to AllowAllStore.

    Raises:
        AuthorizationError: If the store denies access.
    """
    store = store or AllowAllStore()
    allowed = await store.is_allowlisted(
        dao.lower(), chain_id, vcs, repo_ref.host, repo_ref.owner, repo_ref.repo
    )
    if not allowed:
        raise AuthorizationError(
            f"Unauthorized: DAO {dao} not allowed for "
            f"{vcs.value}://{repo_ref.host}/{repo_ref.owner}/{repo_ref.repo}"
        )
    logger.debug("Authorized DAO %s for %s.", dao, repo_ref.url)
