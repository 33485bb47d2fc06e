"""merge:change — merge a pull request via DAO vote."""

import re

from actions.context import ExecContext
from schemas.params import MergeChangeParams
from schemas.result import ActionResult
from schemas.signal import Action, Signal, Target

_CHANGE_NUMBER = re.compile(r"^[0-9]+$")


class MergeChangeHandler:
    """Merges the change named by signal.resource.

    The resource must be a positive decimal change number. Merge strategy
    and commit text come from MergeChangeParams; an omitted commit title or
    message is filled in so the merge commit records the vote.
    """

    action = Action.MERGE
    target = Target.CHANGE
    description = "Merge a pull request via DAO vote"

    async def run(self, signal: Signal, ctx: ExecContext) -> ActionResult:
        repo_url = ctx.repo_ref.url
        resource = signal.resource.strip()

        if not _CHANGE_NUMBER.match(resource) or int(resource) <= 0:
            ctx.logger.warning("Rejected merge:change for %s: invalid change number %r.", repo_url, resource)
            return ActionResult(
                success=False,
                action="validation_failed",
                error=f"Change number must be a positive integer, got {signal.resource!r}",
                repo_url=repo_url,
            )
        change_number = int(resource)

        params = ctx.params if isinstance(ctx.params, MergeChangeParams) else MergeChangeParams()
        params = params.model_copy(update={
            "commit_title": params.commit_title or f"Merge PR #{change_number} via CogniAction",
            "commit_message": params.commit_message or f"Executed by: {ctx.executor}",
        })

        ctx.logger.info(
            "Executing merge:change for %s#%d (method=%s, executor=%s).",
            ctx.repo_ref.full_name, change_number, params.merge_method, ctx.executor,
        )
        result = await ctx.provider.merge_change(ctx.repo_ref, change_number, params)

        if result.success:
            ctx.logger.info("Merged %s#%d (sha=%s).", ctx.repo_ref.full_name, change_number, result.sha)
            return ActionResult(
                success=True,
                action="merge_completed",
                sha=result.sha,
                repo_url=repo_url,
                change_number=change_number,
                status=result.status,
                executor=ctx.executor,
            )

        ctx.logger.error(
            "Failed to merge %s#%d: %s (status %s).",
            ctx.repo_ref.full_name, change_number, result.error, result.status,
        )
        return ActionResult(
            success=False,
            action="merge_failed",
            error=result.error or "merge failed",
            repo_url=repo_url,
            change_number=change_number,
            status=result.status,
            executor=ctx.executor,
        )
