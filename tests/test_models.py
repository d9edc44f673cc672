"""Tests for iqa.models."""

import pytest

from iqa.models import (
    ActionResults,
    AnalysisResult,
    ExtractedResult,
    IssueTestResult,
    JobState,
    JobStatus,
    LinkedIssue,
    TestOutcome,
    is_terminal_status,
)


def _outcome(status: str = "completed", success: bool | None = True, cost: float | None = None) -> TestOutcome:
    result = ExtractedResult(success=success, explanation="ok") if success is not None else None
    return TestOutcome(job_id="job_1", status=status, result=result, cost_usd=cost)


def test_issue_frozen(issue: LinkedIssue) -> None:
    with pytest.raises(Exception):
        issue.title = "changed"  # type: ignore[misc]


def test_has_label_is_case_insensitive(issue: LinkedIssue) -> None:
    assert issue.has_label("QA-Test")
    assert not issue.has_label("qa-failed")


def test_analysis_parses_camel_case_wire_format() -> None:
    analysis = AnalysisResult.model_validate(
        {
            "isTestable": True,
            "testUrl": "https://staging.example.com",
            "testInstructions": "Click login",
            "outputSchema": {"loginWorks": {"type": "boolean", "description": "Can log in?"}},
            "confidence": 0.8,
        }
    )
    assert analysis.is_testable is True
    assert analysis.test_url == "https://staging.example.com"
    assert analysis.output_schema["loginWorks"].type == "boolean"


def test_analysis_confidence_bounded() -> None:
    with pytest.raises(Exception):
        AnalysisResult(is_testable=True, confidence=1.5)


def test_analysis_url_override_leaves_original_untouched(analysis: AnalysisResult) -> None:
    overridden = analysis.model_copy(update={"test_url": "https://preview.example.com"})
    assert overridden.test_url == "https://preview.example.com"
    assert analysis.test_url == "https://staging.example.com"


class TestJobState:
    @pytest.mark.parametrize("state", ["completed", "error", "abandoned", "incomplete"])
    def test_terminal(self, state: str) -> None:
        assert JobState(state).is_terminal
        assert is_terminal_status(state)

    @pytest.mark.parametrize("state", ["pending", "in_progress"])
    def test_non_terminal(self, state: str) -> None:
        assert not JobState(state).is_terminal
        assert not is_terminal_status(state)

    def test_unknown_state_is_not_terminal(self) -> None:
        assert not is_terminal_status("queued_for_tester")

    def test_job_status_wire_format(self) -> None:
        status = JobStatus.model_validate(
            {
                "id": "job_1",
                "status": "completed",
                "result": {"success": True, "explanation": "fine", "data": {"ok": True}},
                "costUsd": 0.25,
                "testDurationSeconds": 120,
                "testerData": {"screenshots": ["https://x/1.png"], "videoUrl": "https://x/v.mp4"},
                "testerAlias": "Falcon",
            }
        )
        assert status.is_terminal
        assert status.cost_usd == 0.25
        assert status.tester_data is not None
        assert status.tester_data.video_url == "https://x/v.mp4"


class TestOutcomePassed:
    def test_completed_and_success(self) -> None:
        assert _outcome().passed

    def test_completed_without_success(self) -> None:
        assert not _outcome(success=False).passed

    def test_completed_without_result(self) -> None:
        assert not _outcome(success=None).passed

    @pytest.mark.parametrize("status", ["error", "abandoned", "incomplete"])
    def test_other_terminal_states_fail_even_with_success(self, status: str) -> None:
        assert not _outcome(status=status, success=True).passed


class TestActionResults:
    def test_record_files_each_issue_once(self) -> None:
        results = ActionResults()
        results.record(IssueTestResult(issue_number=1, status="tested", passed=True, test_result=_outcome(cost=0.5)))
        results.record(
            IssueTestResult(
                issue_number=2, status="tested", passed=False, test_result=_outcome(success=False, cost=0.25)
            )
        )
        results.record(IssueTestResult(issue_number=3, status="skipped", skip_reason="Not testable"))
        results.record(IssueTestResult(issue_number=4, status="error", error="boom"))

        assert results.tested_issues == [1, 2]
        assert results.passed_issues == [1]
        assert results.failed_issues == [2]
        assert results.skipped_issues == [3]
        assert results.total_cost_usd == pytest.approx(0.75)
        assert [r.issue_number for r in results.results] == [1, 2, 3, 4]

    def test_all_errored(self) -> None:
        results = ActionResults()
        results.record(IssueTestResult(issue_number=1, status="error", error="boom"))
        assert results.all_errored

    def test_partial_errors_do_not_fail_run(self) -> None:
        results = ActionResults()
        results.record(IssueTestResult(issue_number=1, status="error", error="boom"))
        results.record(IssueTestResult(issue_number=2, status="skipped", skip_reason="Not testable"))
        assert not results.all_errored

    def test_empty_run_is_not_a_failure(self) -> None:
        assert not ActionResults().all_errored

    def test_dump_uses_wire_names(self) -> None:
        result = IssueTestResult(issue_number=5, status="skipped", skip_reason="Missing label")
        dumped = result.model_dump(mode="json", by_alias=True, exclude_none=True)
        assert dumped == {"issueNumber": 5, "status": "skipped", "passed": False, "skipReason": "Missing label"}
