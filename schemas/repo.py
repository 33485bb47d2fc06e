"""Repository reference schema.

RepoRef is the structured form of a signal's repo_url. parse_repo_ref() is
the single parser used by the executor and the authorization layer.
"""

import re
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict

from schemas.signal import Vcs

# Public hosts with a known provider family.
HOST_VCS = {
    "github.com": Vcs.GITHUB,
    "gitlab.com": Vcs.GITLAB,
}

_SEGMENT = re.compile(r"^[A-Za-z0-9_.-]+$")


class RepoRefError(ValueError):
    """Raised when a repository URL cannot be parsed into a RepoRef."""


class RepoRef(BaseModel):
    """A parsed repository locator.

    Attributes:
        host: Lower-cased host name, e.g. "github.com".
        owner: Owner or organisation. May contain "/"-separated subgroups
            on hosts that support them (e.g. "group/subgroup" on GitLab).
        repo: Repository name without a ".git" suffix.
        url: Canonical https URL built from the three fields above.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    owner: str
    repo: str
    url: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


def parse_repo_ref(repo_url: str) -> RepoRef:
    """Parse a repository URL such as "https://github.com/owner/repo".

    Accepts http(s) URLs with an optional ".git" suffix and trailing slash.
    Everything before the last path segment is the owner.

    Raises:
        RepoRefError: If the URL has no host, a non-http scheme, fewer than
            two path segments, or segments with unexpected characters.
    """
    try:
        parsed = urlparse(repo_url.strip())
    except ValueError as exc:
        raise RepoRefError(f'Failed to parse repository URL "{repo_url}": {exc}') from exc

    if parsed.scheme not in {"http", "https"} or not parsed.hostname:
        raise RepoRefError(f'Failed to parse repository URL "{repo_url}": expected an http(s) URL')

    path = parsed.path.strip("/")
    if path.endswith(".git"):
        path = path[: -len(".git")]
    segments = [s for s in path.split("/") if s]

    if len(segments) < 2:
        raise RepoRefError(
            f'Failed to parse repository URL "{repo_url}": invalid repository path "{path}"'
        )
    if not all(_SEGMENT.match(s) for s in segments):
        raise RepoRefError(
            f'Failed to parse repository URL "{repo_url}": unexpected characters in "{path}"'
        )

    host = parsed.hostname.lower()
    owner = "/".join(segments[:-1])
    repo = segments[-1]
    return RepoRef(host=host, owner=owner, repo=repo, url=f"https://{host}/{owner}/{repo}")


def vcs_for_host(host: str) -> Vcs | None:
    """Provider family of a known host, or None."""
    return HOST_VCS.get(host.lower())


def is_supported_host(host: str) -> bool:
    """Whether a host has a known VCS provider family."""
    return vcs_for_host(host) is not None
