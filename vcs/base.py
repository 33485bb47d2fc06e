"""VcsProvider abstract base class.

Defines the three repository operations a DAO vote can trigger. Action
handlers depend only on this interface, never on a concrete host. Adding
GitLab means writing a new subclass and a branch in the factory, with no
changes to the handlers.

Providers never raise for remote failures. Every operation returns a result
object with success=False and an error message instead, so the handler can
map it straight into an ActionResult.
"""

from abc import ABC, abstractmethod

from schemas.params import GrantCollaboratorParams, MergeChangeParams, RevokeCollaboratorParams
from schemas.repo import RepoRef
from schemas.result import GrantResult, MergeResult, RevokeResult


class VcsProvider(ABC):
    """Authenticated, repository-scoped access to one VCS host.

    Instances are built per signal by the factory and are never shared
    across executions.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider identifier, e.g. "github"."""
        ...

    @abstractmethod
    async def merge_change(
        self, repo_ref: RepoRef, change_number: int, params: MergeChangeParams
    ) -> MergeResult:
        """Merge a pull request / merge request."""
        ...

    @abstractmethod
    async def grant_collaborator(
        self, repo_ref: RepoRef, username: str, params: GrantCollaboratorParams
    ) -> GrantResult:
        """Add a user as a collaborator, or update their permission."""
        ...

    @abstractmethod
    async def revoke_collaborator(
        self, repo_ref: RepoRef, username: str, params: RevokeCollaboratorParams
    ) -> RevokeResult:
        """Remove a user's access, whether active or still invited."""
        ...
