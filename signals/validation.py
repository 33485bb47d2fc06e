"""Signal validation gates.

Three independent, side-effect-free checks run before a signal is
dispatched:

1. check_chain_and_dao() — the signal comes from the configured chain and
   DAO.
2. ensure_fresh() — the deadline has not passed and the nonce is usable.
   The nonce ledger is a pluggable seam; the default ledger remembers
   nothing, so there is no replay protection yet.
3. parse_params() — params_json matches the schema of its action:target
   pair.

Each gate raises SignalValidationError. The runtime records the message
against the transaction hash and moves on to the next one; a failed gate
never aborts the rest of the delivery.
"""

import logging
import time
from typing import Protocol

from pydantic import BaseModel

from schemas.params import GrantCollaboratorParams, MergeChangeParams, RevokeCollaboratorParams
from schemas.signal import Action, Signal, Target
from utils.parse import ParamsParseError, parse_json_model

logger = logging.getLogger(__name__)

PARAMS_SCHEMAS: dict[tuple[Action, Target], type[BaseModel]] = {
    (Action.MERGE, Target.CHANGE): MergeChangeParams,
    (Action.GRANT, Target.COLLABORATOR): GrantCollaboratorParams,
    (Action.REVOKE, Target.COLLABORATOR): RevokeCollaboratorParams,
}


class SignalValidationError(Exception):
    """A signal failed a validation gate. Not a fault: it is reported."""


class ParamsValidationError(SignalValidationError):
    """params_json is malformed or does not match its schema."""


class NonceLedger(Protocol):
    """Replay-protection store consulted by ensure_fresh().

    A persistent implementation would key nonces by (dao, repo_url, nonce).
    The check must be read-only; recording a nonce as used belongs after a
    successful execution.
    """

    def is_replayed(self, signal: Signal) -> bool: ...


class NoReplayLedger:
    """Ledger that has seen nothing. Every nonce is accepted."""

    def is_replayed(self, signal: Signal) -> bool:
        return False


def check_chain_and_dao(signal: Signal, allowed_chain_id: int, allowed_dao: str) -> None:
    """Reject signals from any chain or DAO other than the configured ones.

    Raises:
        SignalValidationError: On a chain id or DAO address mismatch.
    """
    if signal.chain_id != allowed_chain_id:
        raise SignalValidationError(
            f"chainId mismatch: got {signal.chain_id}, expected {allowed_chain_id}"
        )
    if signal.dao.lower() != allowed_dao.lower():
        raise SignalValidationError(
            f"DAO mismatch: got {signal.dao.lower()}, expected {allowed_dao.lower()}"
        )


def ensure_fresh(
    signal: Signal,
    *,
    now: int | None = None,
    ledger: NonceLedger | None = None,
    require_extra: bool = False,
) -> None:
    """Check the deadline and nonce of a signal.

    Args:
        signal: The decoded signal.
        now: Current unix time. Defaults to time.time().
        ledger: Nonce ledger to consult. Defaults to NoReplayLedger.
        require_extra: Reject signals whose extra field did not decode,
            instead of trusting their fallback deadline.

    Raises:
        SignalValidationError: If the signal is expired, has a negative
            nonce, was already seen, or lacks extra in strict mode.
    """
    if now is None:
        now = int(time.time())
    ledger = ledger or NoReplayLedger()

    if require_extra and not signal.extra_decoded:
        raise SignalValidationError("Signal has no decodable extra field (nonce/deadline required)")

    if signal.deadline < now:
        raise SignalValidationError(f"Signal expired: deadline {signal.deadline} < now {now}")

    if signal.nonce < 0:
        raise SignalValidationError(f"Invalid nonce: {signal.nonce}. Must be >= 0")

    if ledger.is_replayed(signal):
        raise SignalValidationError(f"Replayed nonce {signal.nonce} for {signal.repo_url}")

    if signal.nonce == 0:
        logger.warning("Signal for %s uses nonce=0 (no replay protection).", signal.repo_url)
    else:
        logger.info("Signal nonce %d accepted (replay protection not persisted).", signal.nonce)


def parse_params(signal: Signal) -> BaseModel | None:
    """Validate params_json against the schema of the signal's action pair.

    Returns:
        The parsed parameters, or None if the pair has no schema. An
        unregistered pair is reported later by the action registry.

    Raises:
        ParamsValidationError: If params_json is malformed or has unknown
            or invalid fields.
    """
    schema = PARAMS_SCHEMAS.get((signal.action, signal.target))
    if schema is None:
        return None
    try:
        return parse_json_model(signal.params_json, schema)
    except ParamsParseError as exc:
        raise ParamsValidationError(f"{signal.action_key}: {exc}") from exc
