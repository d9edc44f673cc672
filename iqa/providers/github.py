"""GitHub REST API v3 + GraphQL issue source."""

import logging
from datetime import datetime, timezone
from typing import Any, Literal
from urllib.parse import quote

import httpx

from iqa.errors import AuthenticationError, ServiceError
from iqa.models import LinkedIssue, PRComment, PRContext
from iqa.providers.base import IssueSource
from iqa.settings import IqaSettings

logger = logging.getLogger(__name__)

_CLOSING_ISSUES = """
query($owner: String!, $repo: String!, $prNumber: Int!) {
  repository(owner: $owner, name: $repo) {
    pullRequest(number: $prNumber) {
      closingIssuesReferences(first: 50) {
        nodes {
          number
          title
          body
          state
          labels(first: 20) { nodes { name } }
        }
      }
    }
  }
}
"""

_BOT_LOGINS = ("github-actions",)


def is_bot_author(login: str) -> bool:
    lowered = login.lower()
    return lowered.endswith("[bot]") or lowered in _BOT_LOGINS or "dependabot" in lowered


def graphql_url(api_url: str) -> str:
    # GitHub Enterprise serves REST at /api/v3 and GraphQL at /api/graphql.
    if api_url.endswith("/api/v3"):
        return api_url.removesuffix("/v3") + "/graphql"
    return f"{api_url}/graphql"


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(data, dict):
        return str(data.get("message") or data)
    return str(data)


def _parse_timestamp(raw: str | None) -> datetime:
    if not raw:
        return datetime.min.replace(tzinfo=timezone.utc)
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class GitHubProvider(IssueSource):
    def __init__(self, settings: IqaSettings) -> None:
        self._owner, self._repo = settings.repo
        self._api_url = settings.github_api_url
        self._headers = {
            "Authorization": f"Bearer {settings.github_token.get_secret_value()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def repository(self) -> str:
        return f"{self._owner}/{self._repo}"

    def _send(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        body: dict | None = None,
        url: str | None = None,
    ) -> httpx.Response:
        response = httpx.request(
            method,
            url or f"{self._api_url}{path}",
            headers=self._headers,
            params=params,
            json=body,
            timeout=30,
        )
        if response.status_code == 401:
            raise AuthenticationError(
                "GitHub API returned 401. Check that the github-token input is set "
                "and has issues: write and pull-requests: read permissions."
            )
        if response.is_error:
            raise ServiceError(
                f"GitHub API {method} {path} failed ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )
        return response

    def _get(self, path: str, params: dict | None = None) -> Any:
        return self._send("GET", path, params=params).json()

    def _gql(self, query: str, variables: dict) -> dict:
        response = self._send(
            "POST",
            "/graphql",
            body={"query": query, "variables": variables},
            url=graphql_url(self._api_url),
        )
        data = response.json()
        if data.get("errors"):
            raise ServiceError(f"GitHub GraphQL error: {data['errors']}")
        return data["data"]

    def _issue_path(self, number: int) -> str:
        return f"/repos/{self._owner}/{self._repo}/issues/{number}"

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_issue(self, number: int) -> LinkedIssue | None:
        try:
            node = self._get(self._issue_path(number))
        except ServiceError as exc:
            if exc.status_code == 404:
                logger.warning("Issue #%d not found", number)
                return None
            raise
        # The issues endpoint also serves pull requests.
        if node.get("pull_request"):
            logger.warning("#%d is a pull request, not an issue", number)
            return None
        issue = LinkedIssue(
            number=node["number"],
            title=node["title"],
            body=node.get("body") or "",
            state="OPEN" if node.get("state") == "open" else "CLOSED",
            labels=[label["name"] for label in node.get("labels", []) if isinstance(label, dict)],
        )
        logger.debug("Fetched issue #%d: %s", number, issue.title)
        return issue

    def get_issue_state(self, number: int) -> Literal["OPEN", "CLOSED"]:
        node = self._get(self._issue_path(number))
        return "OPEN" if node.get("state") == "open" else "CLOSED"

    def list_closing_issues(self, pr_number: int) -> list[LinkedIssue]:
        data = self._gql(_CLOSING_ISSUES, {"owner": self._owner, "repo": self._repo, "prNumber": pr_number})
        pull_request = (data.get("repository") or {}).get("pullRequest")
        if not pull_request:
            return []
        return [
            LinkedIssue(
                number=node["number"],
                title=node["title"],
                body=node.get("body") or "",
                state=node["state"],
                labels=[label["name"] for label in node["labels"]["nodes"]],
            )
            for node in pull_request["closingIssuesReferences"]["nodes"]
        ]

    def list_pull_requests_for_commit(self, sha: str) -> list[dict[str, Any]]:
        return self._get(f"/repos/{self._owner}/{self._repo}/commits/{sha}/pulls")

    def get_commit_message(self, sha: str) -> str:
        commit = self._get(f"/repos/{self._owner}/{self._repo}/git/commits/{sha}")
        return commit.get("message") or ""

    def get_pull_request_context(self, pr_number: int) -> PRContext:
        repo_path = f"/repos/{self._owner}/{self._repo}"
        pr = self._get(f"{repo_path}/pulls/{pr_number}")
        # NOTE: first page only (100 per kind); only the first few reach the job anyway.
        issue_comments = self._get(f"{repo_path}/issues/{pr_number}/comments", params={"per_page": "100"})
        review_comments = self._get(f"{repo_path}/pulls/{pr_number}/comments", params={"per_page": "100"})

        comments: list[PRComment] = []
        for nodes, is_review in ((issue_comments, False), (review_comments, True)):
            for node in nodes:
                author = (node.get("user") or {}).get("login") or "unknown"
                if is_bot_author(author) or not node.get("body"):
                    continue
                comments.append(
                    PRComment(
                        body=node["body"],
                        author=author,
                        created_at=_parse_timestamp(node.get("created_at")),
                        is_review_comment=is_review,
                    )
                )
        comments.sort(key=lambda c: c.created_at)

        return PRContext(
            number=pr["number"],
            title=pr["title"],
            body=pr.get("body") or "",
            author=(pr.get("user") or {}).get("login") or "unknown",
            comments=comments,
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def update_issue_state(self, number: int, state: Literal["open", "closed"]) -> None:
        self._send("PATCH", self._issue_path(number), body={"state": state})

    def add_labels(self, number: int, labels: list[str]) -> None:
        self._send("POST", f"{self._issue_path(number)}/labels", body={"labels": labels})

    def remove_label(self, number: int, label: str) -> None:
        try:
            self._send("DELETE", f"{self._issue_path(number)}/labels/{quote(label, safe='')}")
        except ServiceError as exc:
            if exc.status_code != 404:
                raise
            logger.debug('Label "%s" not on issue #%d, nothing to remove', label, number)

    def create_comment(self, number: int, body: str) -> None:
        self._send("POST", f"{self._issue_path(number)}/comments", body={"body": body})
