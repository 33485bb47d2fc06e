"""GitHub App credentials.

The bridge acts on repositories as a GitHub App. Getting a usable token
takes three steps:

1. Sign a short-lived RS256 JWT with the App's private key (iss = App id).
2. Resolve the installation that covers the target repository, either from
   the static DAO_INSTALLATIONS map or via GET /repos/{owner}/{repo}/installation.
3. Exchange the JWT for an installation access token scoped to that one
   repository via POST /app/installations/{id}/access_tokens.

No tokens are cached; every signal resolves fresh credentials.
"""

import base64
import json
import logging
import time

import httpx
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from schemas.repo import RepoRef
from vcs.github_api import DEFAULT_HEADERS, GitHubApiError, raise_for_github_status

logger = logging.getLogger(__name__)

# GitHub rejects App JWTs that live longer than 10 minutes; iat is
# backdated to absorb clock drift.
JWT_BACKDATE_SECONDS = 60
JWT_LIFETIME_SECONDS = 540


class InstallationNotFoundError(Exception):
    """Raised when no GitHub App installation covers a repository."""


class GitHubAppAuth:
    """Issues GitHub App JWTs and installation tokens.

    Attributes:
        app_id: GitHub App id, used as the JWT issuer.
        installations: "<dao>:<owner>/<repo>" -> installation id, keys
            lower-cased. Consulted before the lookup API.
    """

    def __init__(
        self,
        app_id: int,
        private_key_pem: str,
        http: httpx.AsyncClient,
        installations: dict[str, int] | None = None,
    ) -> None:
        key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
        if not isinstance(key, rsa.RSAPrivateKey):
            raise ValueError("GitHub App private key must be an RSA key")
        self._private_key = key
        self._http = http
        self.app_id = app_id
        self.installations = installations or {}

    def app_jwt(self, now: int | None = None) -> str:
        """Return a signed RS256 JWT identifying the App."""
        if now is None:
            now = int(time.time())
        header = {"alg": "RS256", "typ": "JWT"}
        payload = {
            "iat": now - JWT_BACKDATE_SECONDS,
            "exp": now + JWT_LIFETIME_SECONDS,
            "iss": str(self.app_id),
        }
        header_b64 = _b64url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
        payload_b64 = _b64url_encode(json.dumps(payload, separators=(",", ":")).encode("utf-8"))
        signing_input = f"{header_b64}.{payload_b64}".encode()
        signature = self._private_key.sign(signing_input, padding.PKCS1v15(), hashes.SHA256())
        return f"{header_b64}.{payload_b64}.{_b64url_encode(signature)}"

    async def installation_id(self, dao: str, repo_ref: RepoRef) -> int:
        """Resolve the installation covering a repository.

        Raises:
            InstallationNotFoundError: If neither the static map nor GitHub
                knows an installation for the repository.
        """
        key = f"{dao.lower()}:{repo_ref.full_name.lower()}"
        if key in self.installations:
            logger.debug("Installation for %s from DAO_INSTALLATIONS.", key)
            return self.installations[key]

        response = await self._http.get(
            f"/repos/{repo_ref.owner}/{repo_ref.repo}/installation",
            headers=self._app_headers(),
        )
        if response.status_code == 404:
            raise InstallationNotFoundError(
                f"No GitHub App installation found for DAO {dao} and repo {repo_ref.full_name}"
            )
        raise_for_github_status(response)
        return int(response.json()["id"])

    async def installation_token(self, installation_id: int, repo_ref: RepoRef | None = None) -> str:
        """Create an installation access token.

        Args:
            installation_id: Installation to act as.
            repo_ref: When given, the token is restricted to this repository.
        """
        body = {"repositories": [repo_ref.repo]} if repo_ref is not None else None
        response = await self._http.post(
            f"/app/installations/{installation_id}/access_tokens",
            headers=self._app_headers(),
            json=body,
        )
        raise_for_github_status(response)
        token = response.json().get("token")
        if not token:
            raise GitHubApiError(response.status_code, "access_tokens response had no token")
        return token

    def _app_headers(self) -> dict[str, str]:
        return {**DEFAULT_HEADERS, "Authorization": f"Bearer {self.app_jwt()}"}


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("utf-8").rstrip("=")
