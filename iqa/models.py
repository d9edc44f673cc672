"""Shared pydantic models: the contract between providers, the run loop and outputs."""

from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Testing-service payloads are camelCase on the wire.
_WIRE = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class LinkedIssue(BaseModel):
    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    body: str = ""
    state: Literal["OPEN", "CLOSED"] = "OPEN"
    labels: list[str] = []

    def has_label(self, name: str) -> bool:
        wanted = name.lower()
        return any(label.lower() == wanted for label in self.labels)


class PRComment(BaseModel):
    model_config = ConfigDict(frozen=True)

    body: str
    author: str
    created_at: datetime
    is_review_comment: bool = False


class PRContext(BaseModel):
    """Merged pull request plus its human discussion, oldest comment first."""

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    body: str = ""
    author: str = "unknown"
    comments: list[PRComment] = []


class OutputField(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    description: str = ""


class AnalysisResult(BaseModel):
    """Verdict of the testability classifier for one issue."""

    model_config = ConfigDict(frozen=True, **_WIRE)

    is_testable: bool
    reason: str | None = None
    test_url: str | None = None
    test_instructions: str = ""
    output_schema: dict[str, OutputField] = {}
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class JobState(StrEnum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ERROR = "error"
    ABANDONED = "abandoned"
    INCOMPLETE = "incomplete"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobState.PENDING, JobState.IN_PROGRESS)


def is_terminal_status(status: str) -> bool:
    """True for the four terminal job states; unknown states keep polling."""
    try:
        return JobState(status).is_terminal
    except ValueError:
        return False


class ExtractedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    success: bool
    explanation: str = ""
    data: dict[str, Any] = {}


class TesterData(BaseModel):
    """Artifacts the human tester's browser session produced."""

    model_config = ConfigDict(frozen=True, **_WIRE)

    test_duration_seconds: float | None = None
    screenshots: list[str] = []
    video_url: str | None = None
    console_messages: list[dict[str, Any]] = []
    network_requests: list[dict[str, Any]] = []
    clicks: list[dict[str, Any]] = []


class JobStatus(BaseModel):
    """One status record as returned by GET /api/jobs/{id}."""

    model_config = ConfigDict(frozen=True, **_WIRE)

    id: str
    status: str
    result: ExtractedResult | None = None
    error: str | None = None
    reason: str | None = None
    cost_usd: float | None = None
    test_duration_seconds: float | None = None
    tester_data: TesterData | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)


class TestOutcome(BaseModel):
    """Normalised terminal result of a QA job."""

    __test__ = False  # not a pytest class despite the name

    model_config = ConfigDict(frozen=True, **_WIRE)

    job_id: str
    status: str
    result: ExtractedResult | None = None
    error: str | None = None
    cost_usd: float | None = None
    test_duration_seconds: float | None = None
    tester_data: TesterData | None = None

    @property
    def passed(self) -> bool:
        return self.status == JobState.COMPLETED and self.result is not None and self.result.success is True


class IssueTestResult(BaseModel):
    """Per-issue outcome record. Mutable: filled in as the issue is processed."""

    model_config = _WIRE

    issue_number: int
    status: Literal["tested", "skipped", "error"] = "skipped"
    passed: bool = False
    analysis: AnalysisResult | None = None
    test_result: TestOutcome | None = None
    error: str | None = None
    skip_reason: str | None = None
    job_id: str | None = None


class ActionResults(BaseModel):
    """Run-level accumulator. Records are appended in processing order."""

    model_config = _WIRE

    tested_issues: list[int] = []
    passed_issues: list[int] = []
    failed_issues: list[int] = []
    skipped_issues: list[int] = []
    total_cost_usd: float = 0.0
    results: list[IssueTestResult] = []

    def record(self, result: IssueTestResult) -> None:
        match result.status:
            case "skipped":
                self.skipped_issues.append(result.issue_number)
            case "tested":
                self.tested_issues.append(result.issue_number)
                if result.passed:
                    self.passed_issues.append(result.issue_number)
                else:
                    self.failed_issues.append(result.issue_number)
                if result.test_result and result.test_result.cost_usd:
                    self.total_cost_usd += result.test_result.cost_usd
        self.results.append(result)

    @property
    def all_errored(self) -> bool:
        return bool(self.results) and all(r.status == "error" for r in self.results)
