"""revoke:collaborator — remove a user's repository access via DAO vote."""

from actions.base import username_error
from actions.context import ExecContext
from schemas.params import RevokeCollaboratorParams
from schemas.result import ActionResult
from schemas.signal import Action, Signal, Target


class RevokeCollaboratorHandler:
    """Removes signal.resource as a collaborator and cancels any pending invite.

    The two-state reconciliation lives in the provider; this handler only
    validates the username and reports which remote state changed.
    """

    action = Action.REVOKE
    target = Target.COLLABORATOR
    description = "Remove a user's repository access via DAO vote"

    async def run(self, signal: Signal, ctx: ExecContext) -> ActionResult:
        username = signal.resource.strip()
        repo_url = ctx.repo_ref.url

        error = username_error(username)
        if error:
            ctx.logger.warning("Rejected revoke:collaborator for %s: %s", repo_url, error)
            return ActionResult(
                success=False, action="validation_failed", error=error, repo_url=repo_url, username=username
            )

        params = ctx.params if isinstance(ctx.params, RevokeCollaboratorParams) else RevokeCollaboratorParams()
        ctx.logger.info(
            "Executing revoke:collaborator for %s: %s (executor=%s).",
            ctx.repo_ref.full_name, username, ctx.executor,
        )
        result = await ctx.provider.revoke_collaborator(ctx.repo_ref, username, params)

        if result.success:
            ctx.logger.info(
                "Revoked %s on %s: collaborator_removed=%s invitation_cancelled=%s.",
                username, ctx.repo_ref.full_name, result.collaborator_removed, result.invitation_cancelled,
            )
            return ActionResult(
                success=True,
                action="admin_removed",
                username=username,
                operation=result.operation,
                collaborator_removed=result.collaborator_removed,
                invitation_cancelled=result.invitation_cancelled,
                invitation_id=result.invitation_id,
                repo_url=repo_url,
                status=result.status,
                executor=ctx.executor,
            )

        ctx.logger.error("Failed to revoke %s on %s: %s", username, ctx.repo_ref.full_name, result.error)
        return ActionResult(
            success=False,
            action="admin_remove_failed",
            error=result.error or "revoke failed",
            username=username,
            collaborator_removed=result.collaborator_removed,
            invitation_cancelled=result.invitation_cancelled,
            repo_url=repo_url,
            status=result.status,
            executor=ctx.executor,
        )
