"""Action parameter schemas.

Each action:target pair accepts its own optional parameters through the
signal's params_json. Unknown keys are rejected so a typo in a governance
proposal fails loudly instead of being silently ignored.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict

MergeMethod = Literal["merge", "squash", "rebase"]
Permission = Literal["pull", "triage", "push", "maintain", "admin"]


class MergeChangeParams(BaseModel):
    """Parameters for merge:change.

    Attributes:
        merge_method: Merge strategy. Defaults to a merge commit.
        commit_title: Title of the merge commit. Filled in by the handler
            when omitted.
        commit_message: Body of the merge commit. Filled in by the handler
            when omitted.
    """

    model_config = ConfigDict(extra="forbid")

    merge_method: MergeMethod = "merge"
    commit_title: str | None = None
    commit_message: str | None = None


class GrantCollaboratorParams(BaseModel):
    """Parameters for grant:collaborator."""

    model_config = ConfigDict(extra="forbid")

    permission: Permission = "admin"


class RevokeCollaboratorParams(BaseModel):
    """revoke:collaborator takes no parameters."""

    model_config = ConfigDict(extra="forbid")
