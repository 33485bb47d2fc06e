"""CogniAction log decoder.

This is the only module that knows the raw event layout emitted by the
governance contract:

    event CogniAction(
        address indexed dao,
        uint256 indexed chainId,
        string repoUrl,
        string action,
        string target,
        string resource,
        bytes extra,
        address indexed executor
    )

Indexed fields live in topics[1..3]; the rest are ABI-encoded in data.
The extra field optionally carries abi.encode(uint256 nonce, uint64
deadline, string paramsJson). Events emitted before that encoding existed
leave it empty, so decoding extra is a two-stage parse: try the strict
decode, and fall back to defaults rather than rejecting the whole signal.

Decoding is a pure function of the log and the block timestamp, so the
same receipt always yields an identical Signal.
"""

import logging
from typing import Any, Mapping, NamedTuple
from urllib.parse import urlparse

from eth_abi import decode as abi_decode
from eth_abi.exceptions import DecodingError
from eth_utils import encode_hex, keccak, to_bytes

from schemas.repo import vcs_for_host
from schemas.signal import Action, Signal, Target, Vcs

logger = logging.getLogger(__name__)

EVENT_SIGNATURE = "CogniAction(address,uint256,string,string,string,string,bytes,address)"
COGNI_TOPIC0 = encode_hex(keccak(text=EVENT_SIGNATURE))

# Validity window granted to signals whose extra field did not decode,
# measured from the timestamp of the block that emitted them.
EXTRA_FALLBACK_TTL_SECONDS = 24 * 60 * 60

_DATA_TYPES = ["string", "string", "string", "string", "bytes"]
_EXTRA_TYPES = ["uint256", "uint64", "string"]


class ExtraFields(NamedTuple):
    nonce: int
    deadline: int
    params_json: str


def decode_extra(extra: bytes) -> ExtraFields | None:
    """Strictly decode the nested (nonce, deadline, paramsJson) encoding.

    Returns None for an empty or all-zero field and for anything that does
    not decode cleanly. The caller decides what a missing extra means.
    """
    if not extra or not any(extra):
        return None
    try:
        nonce, deadline, params_json = abi_decode(_EXTRA_TYPES, extra)
    except (DecodingError, UnicodeDecodeError, ValueError, OverflowError) as exc:
        logger.warning("Could not decode CogniAction extra field (%d bytes): %s", len(extra), exc)
        return None
    return ExtraFields(nonce=nonce, deadline=deadline, params_json=params_json)


def infer_vcs(repo_url: str) -> Vcs:
    """Host family for a repository URL.

    The event carries no vcs field. Radicle URLs use the rad: scheme;
    known public hosts map directly; anything else (e.g. GitHub Enterprise
    hosts) is treated as GitHub.
    """
    parsed = urlparse(repo_url.strip())
    if parsed.scheme == "rad":
        return Vcs.RADICLE
    return vcs_for_host(parsed.hostname or "") or Vcs.GITHUB


def is_cogni_log(log: Mapping[str, Any]) -> bool:
    """Whether a log's topic-0 is the CogniAction event signature."""
    topics = log.get("topics") or []
    if not topics:
        return False
    return encode_hex(_as_bytes(topics[0])).lower() == COGNI_TOPIC0


def decode_cogni_log(log: Mapping[str, Any], block_timestamp: int) -> Signal | None:
    """Decode one receipt log into a Signal.

    Args:
        log: A receipt log with "topics" and "data". Values may be bytes,
            HexBytes or 0x-prefixed hex strings.
        block_timestamp: Timestamp of the block that emitted the log. Used
            only to compute the fallback deadline.

    Returns:
        The decoded Signal, or None if the log is not a CogniAction event,
        is malformed, or names an unknown action or target.
    """
    if not is_cogni_log(log):
        return None

    topics = [_as_bytes(t) for t in log["topics"]]
    if len(topics) != 4:
        logger.warning("CogniAction log has %d topics, expected 4 — skipping.", len(topics))
        return None

    try:
        (dao,) = abi_decode(["address"], topics[1])
        (chain_id,) = abi_decode(["uint256"], topics[2])
        (executor,) = abi_decode(["address"], topics[3])
        repo_url, action, target, resource, extra = abi_decode(_DATA_TYPES, _as_bytes(log.get("data", b"")))
    except (DecodingError, UnicodeDecodeError, ValueError) as exc:
        logger.warning("Failed to decode CogniAction log: %s", exc)
        return None

    try:
        action_enum = Action(action)
        target_enum = Target(target)
    except ValueError:
        logger.warning(
            "CogniAction log has invalid action/target %r:%r. Expected action in %s, target in %s.",
            action,
            target,
            [a.value for a in Action],
            [t.value for t in Target],
        )
        return None

    fields = decode_extra(extra)
    if fields is None:
        fields = ExtraFields(
            nonce=0,
            deadline=block_timestamp + EXTRA_FALLBACK_TTL_SECONDS,
            params_json="",
        )
        extra_decoded = False
    else:
        extra_decoded = True

    return Signal(
        dao=dao,
        chain_id=chain_id,
        vcs=infer_vcs(repo_url),
        repo_url=repo_url,
        action=action_enum,
        target=target_enum,
        resource=resource,
        nonce=fields.nonce,
        deadline=fields.deadline,
        params_json=fields.params_json,
        executor=executor,
        extra_decoded=extra_decoded,
    )


# ── Private helpers ────────────────────────────────────────────────────────────

def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return to_bytes(hexstr=value)
    return bytes(value)
