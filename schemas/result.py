"""Result schemas.

VCS providers return MergeResult, GrantResult and RevokeResult; action
handlers translate those into one ActionResult per signal. Results are
logged, returned in the webhook response body, and discarded.
"""

from pydantic import BaseModel, model_validator


class MergeResult(BaseModel):
    """Outcome of merging a change on the host."""

    success: bool
    sha: str | None = None
    merged: bool | None = None
    message: str | None = None
    error: str | None = None
    status: int | None = None


class GrantResult(BaseModel):
    """Outcome of adding or updating a collaborator."""

    success: bool
    username: str | None = None
    permission: str | None = None
    error: str | None = None
    status: int | None = None


class RevokeResult(BaseModel):
    """Outcome of the two-path revoke reconciliation.

    Attributes:
        operation: Which remote state changed: "collaborator_removed",
            "invitation_cancelled", or both joined by "+". None on failure.
        collaborator_removed: True if an active collaborator was removed.
        invitation_cancelled: True if a pending invitation was cancelled.
        invitation_id: Id of the cancelled invitation, if any.
    """

    success: bool
    username: str | None = None
    operation: str | None = None
    invitation_id: int | None = None
    collaborator_removed: bool = False
    invitation_cancelled: bool = False
    error: str | None = None
    status: int | None = None


class ActionResult(BaseModel):
    """Outcome of executing one signal.

    The action tag describes the result, not the request: "merge_completed",
    "admin_remove_failed", "validation_failed", "unsupported",
    "execution_failed" and so on.

    Action-specific fields stay None when they do not apply, so
    model_dump(exclude_none=True) gives a compact audit record.

    Invariant: a failed result always carries an error message.
    """

    success: bool
    action: str
    error: str | None = None
    repo_url: str | None = None
    change_number: int | None = None
    sha: str | None = None
    username: str | None = None
    permission: str | None = None
    operation: str | None = None
    collaborator_removed: bool | None = None
    invitation_cancelled: bool | None = None
    invitation_id: int | None = None
    status: int | None = None
    executor: str | None = None
    available_actions: list[str] | None = None

    @model_validator(mode="after")
    def _failure_has_error(self) -> "ActionResult":
        if not self.success and not self.error:
            raise ValueError(f"ActionResult '{self.action}' failed without an error message")
        return self
