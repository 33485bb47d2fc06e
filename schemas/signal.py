"""Signal schema.

A Signal is the decoded form of one on-chain CogniAction event. It is built
exactly once per matching log by the decoder, never modified afterwards, and
flows by value through validation, authorization and execution. Nothing in
the pipeline persists it.

Large integers (chain_id, nonce) are plain Python ints so uint256 values
compare exactly; signal_to_log() renders them as strings for JSON logs.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class Vcs(str, Enum):
    """Version-control hosts a signal can target."""

    GITHUB = "github"
    GITLAB = "gitlab"
    RADICLE = "radicle"


class Action(str, Enum):
    """What the DAO voted to do."""

    MERGE = "merge"
    GRANT = "grant"
    REVOKE = "revoke"


class Target(str, Enum):
    """What kind of repository object the action applies to."""

    CHANGE = "change"
    COLLABORATOR = "collaborator"


class Signal(BaseModel):
    """A decoded CogniAction governance event.

    Attributes:
        dao: Address of the DAO that emitted the vote.
        chain_id: Chain the DAO lives on (uint256).
        vcs: Host family of repo_url.
        repo_url: Repository the action applies to.
        action: Verb of the action (merge, grant, revoke).
        target: Object of the action (change, collaborator). Together with
            action it selects a handler; the pair is checked by the action
            registry, not here.
        resource: Action-dependent operand, e.g. a change number for
            merge:change or a username for grant:collaborator. Validated by
            the handler.
        nonce: Replay-protection counter from the extra field. 0 when the
            extra field was absent or undecodable.
        deadline: Unix seconds after which the signal is stale.
        params_json: Free-form JSON with action-specific parameters.
        executor: Address that triggered the on-chain execution.
        extra_decoded: False when nonce/deadline/params_json are defaults
            because the extra field could not be decoded.
    """

    model_config = ConfigDict(frozen=True)

    dao: str
    chain_id: int = Field(ge=0)
    vcs: Vcs
    repo_url: str
    action: Action
    target: Target
    resource: str
    nonce: int = Field(default=0, ge=0)
    deadline: int = Field(ge=0)
    params_json: str = ""
    executor: str
    extra_decoded: bool = True

    @property
    def action_key(self) -> str:
        """Registry key for this signal, e.g. "merge:change"."""
        return f"{self.action.value}:{self.target.value}"


def signal_to_log(signal: Signal) -> dict:
    """Render a Signal as a JSON-safe dict for structured log lines."""
    return {
        "dao": signal.dao,
        "chainId": str(signal.chain_id),
        "vcs": signal.vcs.value,
        "repoUrl": signal.repo_url,
        "action": signal.action.value,
        "target": signal.target.value,
        "resource": signal.resource,
        "nonce": str(signal.nonce),
        "deadline": signal.deadline,
        "paramsJson": signal.params_json,
        "executor": signal.executor,
        "extraDecoded": signal.extra_decoded,
    }
