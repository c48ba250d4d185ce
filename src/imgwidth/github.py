"""Fetch and update pull request descriptions through the GitHub REST API."""

from dataclasses import dataclass

import requests

from .logging import debug

API_VERSION = "2022-11-28"


class HostIOError(Exception):
    """Raised when a pull request cannot be read or written."""


class PullRequestNotFoundError(HostIOError):
    """The repository or pull request does not exist (or is not visible)."""


class AuthenticationError(HostIOError):
    """The token was rejected or lacks permission."""


@dataclass(frozen=True)
class PullRequestRef:
    """Identifies one pull request."""

    owner: str
    repo: str
    number: int

    def __str__(self) -> str:
        return f"{self.owner}/{self.repo}#{self.number}"

    @classmethod
    def parse(cls, repository: str, number) -> "PullRequestRef":
        """Build a ref from an ``owner/repo`` string and a PR number.

        Raises:
            ValueError: If repository is not of the form owner/repo, or the
                number is not a positive integer
        """
        owner, sep, repo = repository.strip().partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise ValueError(f"Expected 'owner/repo', got {repository!r}")

        number = int(number)
        if number <= 0:
            raise ValueError(f"Pull request number must be positive, got {number}")
        return cls(owner=owner, repo=repo, number=number)


class GitHubClient:
    """Minimal client for the pull request endpoints."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.github.com",
        timeout: float = 15.0,
        session: requests.Session | None = None,
    ):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": API_VERSION,
            }
        )

    def _pull_url(self, ref: PullRequestRef) -> str:
        return f"{self.api_url}/repos/{ref.owner}/{ref.repo}/pulls/{ref.number}"

    def _request(self, method: str, ref: PullRequestRef, **kwargs) -> dict:
        url = self._pull_url(ref)
        debug(f"{method} {url}")
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise HostIOError(f"Request for {ref} failed: {e}") from e

        if resp.status_code == 404:
            raise PullRequestNotFoundError(f"Pull request {ref} not found")
        if resp.status_code in (401, 403):
            raise AuthenticationError(
                f"GitHub rejected the token for {ref} (HTTP {resp.status_code})"
            )
        try:
            resp.raise_for_status()
        except requests.HTTPError as e:
            raise HostIOError(f"Request for {ref} failed: {e}") from e

        try:
            return resp.json()
        except ValueError as e:
            raise HostIOError(f"Invalid JSON in response for {ref}") from e

    def get_pull_request_body(self, ref: PullRequestRef) -> str:
        """Return the pull request description ("" when it has none)."""
        data = self._request("GET", ref)
        return data.get("body") or ""

    def update_pull_request_body(self, ref: PullRequestRef, body: str) -> None:
        """Replace the pull request description."""
        self._request("PATCH", ref, json={"body": body})
