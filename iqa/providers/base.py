"""Abstract base classes for the two collaborators a run talks to."""

from abc import ABC, abstractmethod
from typing import Any, Literal

from iqa.models import AnalysisResult, JobStatus, LinkedIssue, OutputField, PRContext


class IssueSource(ABC):
    """Issues and pull requests of the repository under test."""

    @abstractmethod
    def get_issue(self, number: int) -> LinkedIssue | None:
        """Return the issue, or None if it does not exist or is a pull request."""

    @abstractmethod
    def get_issue_state(self, number: int) -> Literal["OPEN", "CLOSED"]: ...

    @abstractmethod
    def get_pull_request_context(self, pr_number: int) -> PRContext: ...

    @abstractmethod
    def list_closing_issues(self, pr_number: int) -> list[LinkedIssue]: ...

    @abstractmethod
    def list_pull_requests_for_commit(self, sha: str) -> list[dict[str, Any]]: ...

    @abstractmethod
    def get_commit_message(self, sha: str) -> str: ...

    @abstractmethod
    def update_issue_state(self, number: int, state: Literal["open", "closed"]) -> None: ...

    @abstractmethod
    def add_labels(self, number: int, labels: list[str]) -> None: ...

    @abstractmethod
    def remove_label(self, number: int, label: str) -> None:
        """Remove a label; a label that is not on the issue is not an error."""

    @abstractmethod
    def create_comment(self, number: int, body: str) -> None: ...


class TestingService(ABC):
    """AI testability analysis plus human QA jobs."""

    __test__ = False

    @abstractmethod
    def analyze_issue(
        self,
        issue: LinkedIssue,
        preset_url: str | None = None,
        repo: str | None = None,
    ) -> AnalysisResult: ...

    @abstractmethod
    def create_job(
        self,
        url: str,
        description: str,
        output_schema: dict[str, OutputField],
        target_duration_minutes: int,
        validation_instructions: str,
    ) -> str:
        """Create a job and return its id."""

    @abstractmethod
    def get_job_status(self, job_id: str) -> JobStatus: ...
