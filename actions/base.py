"""Action handler contract.

An action handler implements exactly one action:target pair. Handlers are
peers: none extends another, and the registry only sees this protocol.

A handler:
- validates its own resource (a change number, a username, ...)
- calls exactly one VcsProvider operation
- maps the provider result 1:1 into an ActionResult

Handlers never raise for expected failures. A bad resource or a failed
remote call comes back as ActionResult(success=False). Anything else that
escapes run() is caught by ActionExecutor.
"""

import re
from typing import Protocol

from actions.context import ExecContext
from schemas.result import ActionResult
from schemas.signal import Action, Signal, Target

# 1-39 characters, ASCII alphanumerics and single inner hyphens.
_USERNAME = re.compile(r"^[A-Za-z0-9](?:[A-Za-z0-9]|-(?=[A-Za-z0-9])){0,38}$")


class ActionHandler(Protocol):
    """One executable action:target pair.

    Attributes:
        action: The action half of the pair.
        target: The target half of the pair.
        description: One line shown by the registry's metadata listing.
    """

    action: Action
    target: Target
    description: str

    async def run(self, signal: Signal, ctx: ExecContext) -> ActionResult: ...


def username_error(username: str) -> str | None:
    """Return an error message if username is not a valid host login, else None."""
    if not _USERNAME.match(username):
        return f"Invalid GitHub username format: {username}"
    return None
