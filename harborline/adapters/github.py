"""GitHub issue tracker over the REST API.

Reads issues and opens pull requests whose content is a complete
SourceTree: the tree is written through the git data API as a single
commit on a new branch off the default branch.

The token is held as a ``SecretStr`` and only ever placed in the
``Authorization`` header; it never appears in logs or error messages.
"""

from __future__ import annotations

import base64
import logging
import re
from typing import Any

import httpx
from pydantic import SecretStr

from harborline.core.errors import AuthenticationError, IssueNotFound, IssueTrackerError
from harborline.models.source import FileEntry, SourceTree
from harborline.models.tracker import Issue, PullRequest

logger = logging.getLogger(__name__)

_REPO_PATTERNS = (
    re.compile(r"^(?:https?://)?(?:www\.)?github\.com/(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?/?$"),
    re.compile(r"^git@github\.com:(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+?)(?:\.git)?$"),
    re.compile(r"^(?P<owner>[\w.-]+)/(?P<repo>[\w.-]+)$"),
)


def parse_repository(repository_url: str) -> tuple[str, str]:
    """Return ``(owner, repo)`` for a GitHub url, SSH remote, or ``owner/repo``."""
    value = repository_url.strip()
    for pattern in _REPO_PATTERNS:
        match = pattern.match(value)
        if match:
            return match.group("owner"), match.group("repo")
    raise IssueTrackerError(f"Not a GitHub repository: {repository_url!r}")


def branch_name(title: str, tree: SourceTree) -> str:
    """``harborline/<slug-of-title>-<8 hex of tree digest>``."""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")[:40].rstrip("-") or "change"
    return f"harborline/{slug}-{tree.digest.removeprefix('sha256:')[:8]}"


class GitHubIssueTracker:
    """Issue tracker backed by the GitHub REST API.

    Parameters
    ----------
    token:
        Personal access or app token with issues and contents write access.
    api_url:
        API root, for GitHub Enterprise.
    timeout:
        Per-request timeout in seconds.
    transport:
        Optional httpx transport (tests use ``httpx.MockTransport``).
    """

    def __init__(
        self,
        token: SecretStr,
        *,
        api_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._api_url,
            headers={
                "Authorization": f"Bearer {self._token.get_secret_value()}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "harborline",
            },
            timeout=self._timeout,
            transport=self._transport,
        )

    def _request(
        self,
        client: httpx.Client,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        not_found: type[IssueTrackerError] = IssueTrackerError,
    ) -> dict[str, Any]:
        try:
            response = client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            raise IssueTrackerError(f"GitHub {method} {path} failed: {exc}") from exc

        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(
                f"GitHub rejected the credential for {method} {path} (HTTP {status})"
            )
        if status == 404:
            raise not_found(f"GitHub {method} {path}: not found")
        if status >= 400:
            raise IssueTrackerError(
                f"GitHub {method} {path} failed: HTTP {status}: {_error_message(response)}"
            )
        return response.json()

    # ------------------------------------------------------------------
    # IssueTracker protocol
    # ------------------------------------------------------------------

    def read(self, repository_url: str, issue_id: int) -> Issue:
        owner, repo = parse_repository(repository_url)
        with self._client() as client:
            data = self._request(
                client, "GET", f"/repos/{owner}/{repo}/issues/{issue_id}",
                not_found=IssueNotFound,
            )
        if "pull_request" in data:
            raise IssueNotFound(f"#{issue_id} in {owner}/{repo} is a pull request, not an issue")
        logger.info("Read issue %s/%s#%d", owner, repo, issue_id)
        return Issue(
            title=data.get("title") or "",
            body=data.get("body") or "",
            url=data["html_url"],
            number=data.get("number", issue_id),
        )

    def create_pull_request(
        self, repository_url: str, title: str, body: str, tree: SourceTree
    ) -> PullRequest:
        if not len(tree):
            raise IssueTrackerError("Refusing to open a pull request with an empty tree")
        owner, repo = parse_repository(repository_url)
        base = f"/repos/{owner}/{repo}"
        branch = branch_name(title, tree)

        with self._client() as client:
            default_branch = self._request(client, "GET", base)["default_branch"]
            head = self._request(client, "GET", f"{base}/git/ref/heads/{default_branch}")
            parent_sha = head["object"]["sha"]

            entries = [self._tree_entry(client, base, f) for f in tree.files]
            tree_sha = self._request(client, "POST", f"{base}/git/trees", json={"tree": entries})["sha"]
            commit_sha = self._request(client, "POST", f"{base}/git/commits", json={
                "message": title,
                "tree": tree_sha,
                "parents": [parent_sha],
            })["sha"]
            self._request(client, "POST", f"{base}/git/refs", json={
                "ref": f"refs/heads/{branch}",
                "sha": commit_sha,
            })
            pr = self._request(client, "POST", f"{base}/pulls", json={
                "title": title,
                "body": body,
                "head": branch,
                "base": default_branch,
            })

        logger.info("Opened %s/%s#%s from %s", owner, repo, pr.get("number"), branch)
        return PullRequest(url=pr["html_url"], number=pr.get("number", 0), branch=branch)

    def _tree_entry(self, client: httpx.Client, base: str, entry: FileEntry) -> dict[str, Any]:
        mode = "100755" if entry.executable else "100644"
        try:
            text = entry.content.decode("utf-8")
        except UnicodeDecodeError:
            blob = self._request(client, "POST", f"{base}/git/blobs", json={
                "content": base64.b64encode(entry.content).decode("ascii"),
                "encoding": "base64",
            })
            return {"path": entry.path, "mode": mode, "type": "blob", "sha": blob["sha"]}
        return {"path": entry.path, "mode": mode, "type": "blob", "content": text}

    def __repr__(self) -> str:
        return f"<GitHubIssueTracker api_url={self._api_url!r}>"


def _error_message(response: httpx.Response) -> str:
    try:
        return str(response.json().get("message", "")) or response.text
    except ValueError:
        return response.text
