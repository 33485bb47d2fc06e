"""Per-signal execution context."""

import logging
from dataclasses import dataclass

from pydantic import BaseModel

from schemas.repo import RepoRef
from vcs.base import VcsProvider


@dataclass
class ExecContext:
    """Everything an action handler needs besides the signal itself.

    Built fresh by ActionExecutor for every signal and owned by that one
    invocation. Like the handlers, it is an internal runtime object and is
    never serialized.

    Attributes:
        repo_ref: Parsed form of signal.repo_url.
        provider: Authenticated provider scoped to repo_ref.
        logger: Logger the handler writes its audit lines to.
        executor: Address that triggered the on-chain execution.
        params: Parsed params_json for the signal's action pair. None when
            the pair has no params schema.
    """

    repo_ref: RepoRef
    provider: VcsProvider
    logger: logging.Logger
    executor: str
    params: BaseModel | None = None
