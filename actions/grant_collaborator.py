"""grant:collaborator — give a user access to the repository via DAO vote."""

from actions.base import username_error
from actions.context import ExecContext
from schemas.params import GrantCollaboratorParams
from schemas.result import ActionResult
from schemas.signal import Action, Signal, Target


class GrantCollaboratorHandler:
    """Adds signal.resource as a collaborator with the voted permission.

    GitHub answers with an invitation for users who are not yet members,
    so success here means "access granted or invited".
    """

    action = Action.GRANT
    target = Target.COLLABORATOR
    description = "Add a user as repository collaborator via DAO vote"

    async def run(self, signal: Signal, ctx: ExecContext) -> ActionResult:
        username = signal.resource.strip()
        repo_url = ctx.repo_ref.url

        error = username_error(username)
        if error:
            ctx.logger.warning("Rejected grant:collaborator for %s: %s", repo_url, error)
            return ActionResult(
                success=False, action="validation_failed", error=error, repo_url=repo_url, username=username
            )

        params = ctx.params if isinstance(ctx.params, GrantCollaboratorParams) else GrantCollaboratorParams()
        ctx.logger.info(
            "Executing grant:collaborator for %s: %s as %s (executor=%s).",
            ctx.repo_ref.full_name, username, params.permission, ctx.executor,
        )
        result = await ctx.provider.grant_collaborator(ctx.repo_ref, username, params)

        if result.success:
            ctx.logger.info("Added %s to %s (status %s).", username, ctx.repo_ref.full_name, result.status)
            return ActionResult(
                success=True,
                action="admin_added",
                username=username,
                permission=result.permission or params.permission,
                repo_url=repo_url,
                status=result.status,
                executor=ctx.executor,
            )

        ctx.logger.error(
            "Failed to add %s to %s: %s (status %s).",
            username, ctx.repo_ref.full_name, result.error, result.status,
        )
        return ActionResult(
            success=False,
            action="admin_add_failed",
            error=result.error or "grant failed",
            username=username,
            repo_url=repo_url,
            status=result.status,
            executor=ctx.executor,
        )
