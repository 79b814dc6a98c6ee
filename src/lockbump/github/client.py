"""GitHub REST API backend for pull request lookup, edit, and creation.

This module provides an async wrapper around the GitHub API for:
- Finding the most recent pull request for a head branch
- Editing a pull request's title and body
- Creating pull requests and labelling them
- Resolving the repository default branch

Includes rate limit detection. Requests are sent once and never retried;
a failed call surfaces as GitHubAPIError for the caller to handle.
"""

import time
from typing import Any, Callable, Dict, List, Optional, TypeVar

import httpx
import structlog

from lockbump.github.host import PullRequestHostError
from lockbump.github.models import PRCreateRequest, PullRequest

logger = structlog.get_logger()

T = TypeVar("T")

# Raised by json decoding or model construction on an unexpected payload
PAYLOAD_ERRORS = (ValueError, KeyError, IndexError, TypeError, AttributeError)


class GitHubAPIError(PullRequestHostError):
    """Raised when a GitHub API request fails.

    Attributes:
        message: Human-readable error description.
        status_code: HTTP status code from the response.
        response_body: Response body from GitHub API.
        request_url: The URL that was requested.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(
            message,
            context={"status_code": status_code, "request_url": request_url},
        )


class RateLimitError(GitHubAPIError):
    """Raised when GitHub API rate limit is exceeded.

    Attributes:
        reset_at: Unix timestamp when the rate limit resets.
        retry_after: Seconds to wait before retrying.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


class GitHubClient:
    """Async GitHub API client bound to one repository.

    Implements the PullRequestHost protocol over the REST API:

    - Rate limit handling by reading X-RateLimit-* headers
    - Support for both github.com and GitHub Enterprise Server

    Attributes:
        token: GitHub API token (PAT, GITHUB_TOKEN, or GitHub App token).
        repository: Repository slug, "owner/repo".
        base_url: Base URL for GitHub API (default: https://api.github.com).
        timeout: Request timeout in seconds.

    Example:
        >>> async with GitHubClient(token="ghp_xxx", repository="o/r") as client:
        ...     pr = await client.find_pull_request("cargo_update")
    """

    def __init__(
        self,
        token: str,
        repository: str,
        base_url: str = "https://api.github.com",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the GitHub client.

        Args:
            token: GitHub API token for authentication.
            repository: Repository slug, "owner/repo".
            base_url: Base URL for GitHub API. Use this to support
                      GitHub Enterprise Server endpoints.
            timeout: Request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        owner, _, repo = repository.partition("/")
        if not owner or not repo:
            raise ValueError(f"repository must be 'owner/repo', got {repository!r}")

        self.token = token
        self.repository = repository
        self.owner = owner
        self.repo = repo
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the HTTP client, creating it if necessary."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._default_headers(),
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def _default_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "lockbump/1.0",
        }

    async def close(self) -> None:
        """Close the HTTP client and release resources."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    def _parse_int_header(self, headers: httpx.Headers, name: str) -> Optional[int]:
        value = headers.get(name)
        if value is not None:
            try:
                return int(value)
            except ValueError:
                pass
        return None

    def _raise_rate_limit(self, response: httpx.Response) -> None:
        """Raise RateLimitError with the reset information from the response.

        Raises:
            RateLimitError: Always.
        """
        reset_at = self._parse_int_header(response.headers, "x-ratelimit-reset")

        retry_after = None
        if reset_at is not None:
            retry_after = max(0, reset_at - int(time.time()))

        retry_after_header = self._parse_int_header(response.headers, "retry-after")
        if retry_after_header is not None:
            retry_after = retry_after_header

        logger.warning(
            "GitHub API rate limit exceeded",
            reset_at=reset_at,
            retry_after=retry_after,
            limit=self._parse_int_header(response.headers, "x-ratelimit-limit"),
            used=self._parse_int_header(response.headers, "x-ratelimit-used"),
        )

        raise RateLimitError(
            message="GitHub API rate limit exceeded",
            status_code=response.status_code,
            reset_at=reset_at,
            retry_after=retry_after,
            request_url=str(response.url),
        )

    async def _request(
        self,
        method: str,
        path: str,
        json_data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """Send one HTTP request. Failures are never retried.

        Args:
            method: HTTP method (GET, POST, PATCH, ...).
            path: API path (e.g., /repos/owner/repo/pulls).
            json_data: Optional JSON body for the request.
            params: Optional query parameters.

        Returns:
            The HTTP response from GitHub.

        Raises:
            RateLimitError: If rate limit is exceeded.
            GitHubAPIError: On a transport failure or an error status.
        """
        try:
            response = await self.client.request(
                method=method,
                url=path,
                json=json_data,
                params=params,
            )
        except httpx.RequestError as e:
            logger.error(
                "GitHub API request failed",
                path=path,
                method=method,
                error=str(e),
            )
            raise GitHubAPIError(
                message=f"Request to GitHub failed: {e}",
                request_url=f"{self.base_url}{path}",
            ) from e

        if response.status_code == 429 or (
            response.status_code == 403
            and self._parse_int_header(response.headers, "x-ratelimit-remaining") == 0
        ):
            self._raise_rate_limit(response)

        if response.status_code >= 400:
            error_body = response.text
            logger.error(
                "GitHub API error",
                status_code=response.status_code,
                path=path,
                method=method,
                response_body=error_body[:500],
            )
            raise GitHubAPIError(
                message=f"GitHub API error: {response.status_code}",
                status_code=response.status_code,
                response_body=error_body,
                request_url=str(response.url),
            )

        return response

    @property
    def _repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.repo}"

    def _parse_response(self, response: httpx.Response, parse: Callable[[Any], T]) -> T:
        """Decode a JSON response, reporting malformed payloads as API errors."""
        try:
            return parse(response.json())
        except PAYLOAD_ERRORS as exc:
            raise GitHubAPIError(
                f"Unexpected response payload: {exc!r}",
                status_code=response.status_code,
                response_body=response.text[:1000],
                request_url=str(response.request.url),
            ) from exc

    async def get_default_branch(self) -> str:
        """Return the repository's default branch name."""
        response = await self._request(method="GET", path=self._repo_path)
        return self._parse_response(response, lambda data: data["default_branch"])

    async def find_pull_request(self, branch: str) -> Optional[PullRequest]:
        """Return the most recent pull request whose head is the branch.

        Closed and merged pull requests are included so the caller can tell
        them apart from an open one.
        """
        logger.info("Looking up pull request", repository=self.repository, branch=branch)

        response = await self._request(
            method="GET",
            path=f"{self._repo_path}/pulls",
            params={
                "head": f"{self.owner}:{branch}",
                "state": "all",
                "sort": "created",
                "direction": "desc",
                "per_page": 1,
            },
        )

        pull_request = self._parse_response(
            response,
            lambda pulls: PullRequest.from_github_response(pulls[0]) if pulls else None,
        )
        if pull_request is None:
            logger.info("No pull request for branch", branch=branch)
            return None

        logger.info(
            "Found pull request",
            pr_number=pull_request.number,
            state=pull_request.state.value,
        )
        return pull_request

    async def edit_pull_request(self, number: int, title: str, body: str) -> PullRequest:
        """Replace a pull request's title and body."""
        logger.info(
            "Editing pull request",
            repository=self.repository,
            pr_number=number,
            body_length=len(body),
        )

        response = await self._request(
            method="PATCH",
            path=f"{self._repo_path}/pulls/{number}",
            json_data={"title": title, "body": body},
        )
        return self._parse_response(response, PullRequest.from_github_response)

    async def create_pull_request(self, request: PRCreateRequest) -> PullRequest:
        """Create a pull request and apply its labels.

        Raises:
            GitHubAPIError: If the request fails.
        """
        base_branch = request.base_branch or await self.get_default_branch()

        logger.info(
            "Creating pull request",
            repository=self.repository,
            title=request.title,
            head=request.head_branch,
            base=base_branch,
        )

        response = await self._request(
            method="POST",
            path=f"{self._repo_path}/pulls",
            json_data={
                "title": request.title,
                "body": request.body,
                "head": request.head_branch,
                "base": base_branch,
            },
        )

        pull_request = self._parse_response(response, PullRequest.from_github_response)
        logger.info(
            "Pull request created",
            pr_number=pull_request.number,
            pr_url=pull_request.url,
        )

        if request.labels:
            await self._add_pr_labels(pull_request.number, request.labels)

        return pull_request

    async def _add_pr_labels(self, pr_number: int, labels: List[str]) -> None:
        """Add labels to a pull request.

        PRs use the issues API for labels since PRs are a type of issue.
        """
        await self._request(
            method="POST",
            path=f"{self._repo_path}/issues/{pr_number}/labels",
            json_data={"labels": labels},
        )
        logger.info("Labels added to pull request", pr_number=pr_number, labels=labels)
