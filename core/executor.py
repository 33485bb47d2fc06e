"""Action executor.

ActionExecutor turns one validated Signal into exactly one ActionResult. It
owns the exception boundary between the pipeline and the action handlers so
the runtime does not have to.

The key guarantee: execute() never raises. Every failure, expected or not,
comes back as ActionResult(success=False) with an error message.
"""

import logging

from actions.context import ExecContext
from auth.policy import AuthorizationError
from core.registry import ActionRegistry, UnknownActionError
from schemas.repo import RepoRefError, parse_repo_ref
from schemas.result import ActionResult
from schemas.signal import Signal
from signals.validation import ParamsValidationError, parse_params
from vcs.factory import VcsProviderFactory

logger = logging.getLogger(__name__)


class ActionExecutor:
    """Dispatches signals to their action handlers.

    Attributes:
        registry: Maps action:target pairs to handlers.
        provider_factory: Builds an authenticated VcsProvider per signal.
    """

    def __init__(self, registry: ActionRegistry, provider_factory: VcsProviderFactory) -> None:
        self.registry = registry
        self.provider_factory = provider_factory

    async def execute(self, signal: Signal) -> ActionResult:
        """Execute one signal and return its result.

        Steps:
            1. Parse repo_url into a RepoRef
            2. Create the VcsProvider (authorization happens here)
            3. Parse params_json for the action pair
            4. Look up the handler
            5. Run the handler

        Args:
            signal: A signal that already passed the chain/DAO and
                freshness gates.

        Returns:
            The handler's ActionResult, or a failure result tagged
            "validation_failed", "unauthorized", "unsupported" or
            "execution_failed" describing the step that stopped it.
        """
        action_key = signal.action_key

        # Step 1: repository reference.
        try:
            repo_ref = parse_repo_ref(signal.repo_url)
        except RepoRefError as exc:
            logger.warning("Rejected %s: %s", action_key, exc)
            return ActionResult(success=False, action="validation_failed", error=str(exc), repo_url=signal.repo_url)

        # Step 2: authenticated provider.
        try:
            provider = await self.provider_factory.create_provider(
                signal.vcs, repo_ref, signal.dao, signal.chain_id
            )
        except AuthorizationError as exc:
            logger.warning("Rejected %s for %s: %s", action_key, repo_ref.url, exc)
            return ActionResult(success=False, action="unauthorized", error=str(exc), repo_url=repo_ref.url)
        except Exception as exc:
            logger.error("Provider creation failed for %s on %s: %s", action_key, repo_ref.url, exc)
            return ActionResult(
                success=False,
                action="execution_failed",
                error=f"Provider creation failed: {exc}",
                repo_url=repo_ref.url,
            )

        # Step 3: action parameters.
        try:
            params = parse_params(signal)
        except ParamsValidationError as exc:
            logger.warning("Rejected %s for %s: %s", action_key, repo_ref.url, exc)
            return ActionResult(success=False, action="validation_failed", error=str(exc), repo_url=repo_ref.url)

        # Step 4: handler lookup.
        try:
            handler = self.registry.get_handler(signal.action, signal.target)
        except UnknownActionError as exc:
            logger.warning("No handler for %s: %s", action_key, exc)
            return ActionResult(
                success=False,
                action="unsupported",
                error=str(exc),
                repo_url=repo_ref.url,
                available_actions=exc.available,
            )

        # Step 5: run. Anything the handler did not turn into a result
        # stops here.
        ctx = ExecContext(
            repo_ref=repo_ref,
            provider=provider,
            logger=logging.getLogger(f"actions.{signal.action.value}_{signal.target.value}"),
            executor=signal.executor,
            params=params,
        )
        try:
            result = await handler.run(signal, ctx)
        except Exception as exc:
            logger.exception("Handler for %s raised on %s.", action_key, repo_ref.url)
            return ActionResult(
                success=False,
                action="execution_failed",
                error=str(exc) or type(exc).__name__,
                repo_url=repo_ref.url,
            )

        logger.info(
            "Executed %s on %s: success=%s action=%s.",
            action_key, repo_ref.url, result.success, result.action,
        )
        return result
