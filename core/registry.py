"""Action registry.

ActionRegistry is the executor's dispatch table. It maps an action:target
pair to the one handler that implements it, and is built exactly once by
build_action_registry() at the composition root. Nothing registers handlers
at import time.

The registry enforces one invariant: each pair has exactly one handler.
Two handlers for the same pair would make dispatch ambiguous, so duplicate
registration is rejected immediately.
"""

from actions.base import ActionHandler
from actions.grant_collaborator import GrantCollaboratorHandler
from actions.merge_change import MergeChangeHandler
from actions.revoke_collaborator import RevokeCollaboratorHandler
from schemas.signal import Action, Target


class UnknownActionError(KeyError):
    """Raised when no handler is registered for an action:target pair.

    Attributes:
        available: Every registered pair, formatted "action:target".
    """

    def __init__(self, action: str, target: str, available: list[str]):
        self.available = available
        self.message = (
            f"Unknown action: {action}:{target}. "
            f"Available actions: {', '.join(available) or '(none)'}"
        )
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class ActionRegistry:
    """Tracks registered action handlers and provides lookup by pair.

    Attributes:
        _handlers: Internal dict keyed on (action, target).
    """

    def __init__(self) -> None:
        """Initialise an empty registry."""
        self._handlers: dict[tuple[Action, Target], ActionHandler] = {}

    def register(self, action: Action, target: Target, handler: ActionHandler) -> None:
        """Register the handler for an action:target pair.

        Raises:
            ValueError: If the pair already has a handler. This is always a
                programming error, not a recoverable condition.
        """
        key = (Action(action), Target(target))
        if key in self._handlers:
            raise ValueError(
                f"Action '{key[0].value}:{key[1].value}' is already registered. "
                "Each action:target pair must have exactly one handler."
            )
        self._handlers[key] = handler

    def get_handler(self, action: Action | str, target: Target | str) -> ActionHandler:
        """Look up the handler for a pair.

        Args:
            action: Action enum or its string value.
            target: Target enum or its string value.

        Raises:
            UnknownActionError: If no handler is registered for the pair.
                The message lists every registered pair.
        """
        action_value = getattr(action, "value", action)
        target_value = getattr(target, "value", target)
        for (registered_action, registered_target), handler in self._handlers.items():
            if registered_action.value == action_value and registered_target.value == target_value:
                return handler
        raise UnknownActionError(action_value, target_value, self.list_available())

    def list_available(self) -> list[str]:
        """Return every registered pair as "action:target", in registration order."""
        return [f"{action.value}:{target.value}" for action, target in self._handlers]

    def metadata(self) -> list[dict[str, str]]:
        """Return one {"action", "target", "description"} dict per handler."""
        return [
            {"action": action.value, "target": target.value, "description": handler.description}
            for (action, target), handler in self._handlers.items()
        ]

    def __len__(self) -> int:
        return len(self._handlers)


def build_action_registry() -> ActionRegistry:
    """Registry with every supported action handler."""
    registry = ActionRegistry()
    for handler in (MergeChangeHandler(), GrantCollaboratorHandler(), RevokeCollaboratorHandler()):
        registry.register(handler.action, handler.target, handler)
    return registry
