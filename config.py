"""Service configuration.

All settings come from the environment (optionally seeded from a .env file).
Settings.from_env() validates everything at once and raises ConfigError
listing every missing or malformed variable, so a misconfigured deployment
fails at startup rather than on the first webhook delivery.

Required:
    CHAIN_ID, SIGNAL_CONTRACT, ALLOWED_DAO, EVM_RPC_URL, GITHUB_APP_ID,
    GITHUB_PRIVATE_KEY (or GITHUB_PRIVATE_KEY_PATH)

Optional:
    ALCHEMY_SIGNING_KEY, GITHUB_API_URL, DAO_INSTALLATIONS,
    REQUIRE_SIGNAL_EXTRA, LOG_LEVEL, LOG_FILE, HOST, PORT
"""

import json
import os
import pathlib
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import urlparse

from dotenv import load_dotenv

DEFAULT_GITHUB_API_URL = "https://api.github.com"
DEFAULT_LOG_FILE = "dao_bridge.log"

_TRUTHY = {"1", "true", "yes", "on"}


class ConfigError(Exception):
    """Raised when required configuration is missing or malformed.

    Attributes:
        problems: One human-readable line per offending variable.
    """

    def __init__(self, problems: list[str]):
        super().__init__("Environment validation failed:\n  - " + "\n  - ".join(problems))
        self.problems = problems


@dataclass(frozen=True)
class Settings:
    """Validated runtime configuration.

    Attributes:
        chain_id: The only chain id whose signals are accepted. Kept as a
            Python int so uint256 values compare exactly.
        signal_contract: Address of the governance contract emitting the
            CogniAction event.
        allowed_dao: The only DAO address whose signals are accepted,
            lower-cased.
        evm_rpc_url: JSON-RPC endpoint used to fetch transaction receipts.
        github_app_id: GitHub App id used as the JWT issuer.
        github_private_key: PEM-encoded RSA private key of the GitHub App.
        alchemy_signing_key: HMAC key for webhook verification. None skips
            the check.
        github_api_url: Base URL of the GitHub REST API.
        dao_installations: Static "<dao>:<owner>/<repo>" -> installation id
            map consulted before the installation lookup API.
        require_signal_extra: Reject signals whose extra field did not decode.
    """

    chain_id: int
    signal_contract: str
    allowed_dao: str
    evm_rpc_url: str
    github_app_id: int
    github_private_key: str
    alchemy_signing_key: str | None = None
    github_api_url: str = DEFAULT_GITHUB_API_URL
    dao_installations: dict[str, int] = field(default_factory=dict)
    require_signal_extra: bool = False
    log_level: str = "INFO"
    log_file: str = DEFAULT_LOG_FILE
    host: str = "127.0.0.1"
    port: int = 8000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "Settings":
        """Build Settings from the process environment.

        Args:
            environ: Mapping to read instead of os.environ. Tests pass a
                plain dict here; when omitted, .env is loaded first.

        Raises:
            ConfigError: If any required variable is missing or malformed.
        """
        if environ is None:
            load_dotenv()
            environ = os.environ

        problems: list[str] = []

        def required(name: str) -> str:
            value = (environ.get(name) or "").strip()
            if not value:
                problems.append(f"{name}: required")
            return value

        chain_id = _parse_int(required("CHAIN_ID"), "CHAIN_ID", problems, minimum=1)
        signal_contract = required("SIGNAL_CONTRACT")
        if signal_contract and not _is_address(signal_contract):
            problems.append("SIGNAL_CONTRACT: expected a 0x-prefixed 20-byte address")
        allowed_dao = required("ALLOWED_DAO")
        if allowed_dao and not _is_address(allowed_dao):
            problems.append("ALLOWED_DAO: expected a 0x-prefixed 20-byte address")

        evm_rpc_url = required("EVM_RPC_URL")
        if evm_rpc_url and urlparse(evm_rpc_url).scheme not in {"http", "https"}:
            problems.append("EVM_RPC_URL: expected an http(s) URL")

        github_app_id = _parse_int(required("GITHUB_APP_ID"), "GITHUB_APP_ID", problems, minimum=1)
        github_private_key = _load_private_key(environ, problems)
        dao_installations = _parse_installations(environ.get("DAO_INSTALLATIONS", ""), problems)

        port = _parse_int(environ.get("PORT", "8000"), "PORT", problems, minimum=1)

        if problems:
            raise ConfigError(problems)

        return cls(
            chain_id=chain_id,
            signal_contract=signal_contract,
            allowed_dao=allowed_dao.lower(),
            evm_rpc_url=evm_rpc_url,
            github_app_id=github_app_id,
            github_private_key=github_private_key,
            alchemy_signing_key=environ.get("ALCHEMY_SIGNING_KEY") or None,
            github_api_url=environ.get("GITHUB_API_URL") or DEFAULT_GITHUB_API_URL,
            dao_installations=dao_installations,
            require_signal_extra=environ.get("REQUIRE_SIGNAL_EXTRA", "").strip().lower() in _TRUTHY,
            log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
            log_file=environ.get("LOG_FILE") or DEFAULT_LOG_FILE,
            host=environ.get("HOST") or "127.0.0.1",
            port=port,
        )


# ── Private helpers ────────────────────────────────────────────────────────────

def _parse_int(raw: str, name: str, problems: list[str], minimum: int) -> int:
    if not raw:
        return 0
    try:
        value = int(raw, 0)
    except ValueError:
        problems.append(f"{name}: expected an integer, got {raw!r}")
        return 0
    if value < minimum:
        problems.append(f"{name}: must be >= {minimum}")
    return value


def _is_address(value: str) -> bool:
    if not value.startswith("0x") or len(value) != 42:
        return False
    try:
        int(value[2:], 16)
    except ValueError:
        return False
    return True


def _load_private_key(environ: Mapping[str, str], problems: list[str]) -> str:
    """Read the GitHub App key inline or from a file path."""
    inline = environ.get("GITHUB_PRIVATE_KEY", "")
    if inline.strip():
        # Keys pasted into .env usually carry literal "\n" sequences.
        return inline.replace("\\n", "\n")

    path = environ.get("GITHUB_PRIVATE_KEY_PATH", "").strip()
    if not path:
        problems.append("GITHUB_PRIVATE_KEY: required (or set GITHUB_PRIVATE_KEY_PATH)")
        return ""
    try:
        return pathlib.Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        problems.append(f"GITHUB_PRIVATE_KEY_PATH: cannot read {path}: {exc}")
        return ""


def _parse_installations(raw: str, problems: list[str]) -> dict[str, int]:
    """Parse DAO_INSTALLATIONS into a normalised key -> id map.

    Keys are "<dao>:<owner>/<repo>" and are lower-cased, so lookups are
    case-insensitive on both halves.
    """
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        problems.append(f"DAO_INSTALLATIONS: invalid JSON ({exc.msg})")
        return {}
    if not isinstance(data, dict):
        problems.append("DAO_INSTALLATIONS: expected a JSON object")
        return {}

    mapping: dict[str, int] = {}
    for key, value in data.items():
        dao, sep, repo = str(key).partition(":")
        if not sep or not dao or "/" not in repo:
            problems.append(f"DAO_INSTALLATIONS: key {key!r} must look like '<dao>:<owner>/<repo>'")
            continue
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            problems.append(f"DAO_INSTALLATIONS: installation id for {key!r} must be a positive integer")
            continue
        mapping[f"{dao.lower()}:{repo.lower()}"] = value
    return mapping
