"""Tests for iqa.outputs: $GITHUB_OUTPUT and $GITHUB_STEP_SUMMARY files."""

import json
from pathlib import Path

from iqa.models import ActionResults, IssueTestResult, TestOutcome
from iqa.outputs import _format_output, build_outputs, write_outputs, write_summary


def _results() -> ActionResults:
    results = ActionResults()
    results.record(
        IssueTestResult(
            issue_number=3,
            status="tested",
            passed=True,
            job_id="job_1",
            test_result=TestOutcome(job_id="job_1", status="completed", cost_usd=0.12346),
        )
    )
    results.record(IssueTestResult(issue_number=4, status="skipped", skip_reason="Not testable by human"))
    return results


class TestBuildOutputs:
    def test_values(self) -> None:
        outputs = build_outputs(_results())

        assert outputs["tested-issues"] == "[3]"
        assert outputs["passed-issues"] == "[3]"
        assert outputs["failed-issues"] == "[]"
        assert outputs["skipped-issues"] == "[4]"
        assert outputs["total-cost-usd"] == "0.1235"

    def test_results_use_wire_names_and_drop_nulls(self) -> None:
        records = json.loads(build_outputs(_results())["results"])

        assert records[0]["issueNumber"] == 3
        assert records[0]["jobId"] == "job_1"
        assert records[0]["testResult"]["costUsd"] == 0.12346
        assert "error" not in records[0]
        assert records[1] == {
            "issueNumber": 4,
            "status": "skipped",
            "passed": False,
            "skipReason": "Not testable by human",
        }

    def test_empty_run(self) -> None:
        outputs = build_outputs(ActionResults())
        assert outputs["tested-issues"] == "[]"
        assert outputs["total-cost-usd"] == "0.0000"
        assert outputs["results"] == "[]"


class TestWriteFiles:
    def test_write_outputs_appends(self, tmp_path: Path) -> None:
        path = tmp_path / "output.txt"
        path.write_text("earlier=1\n")

        assert write_outputs(_results(), str(path)) is True

        lines = path.read_text().splitlines()
        assert lines[0] == "earlier=1"
        assert "tested-issues=[3]" in lines
        assert "total-cost-usd=0.1235" in lines

    def test_no_output_file(self) -> None:
        assert write_outputs(_results(), None) is False

    def test_multiline_value_uses_delimiter(self) -> None:
        text = _format_output("notes", "one\ntwo")
        first, *rest = text.splitlines()
        assert first.startswith("notes<<ghadelimiter_")
        delimiter = first.split("<<", 1)[1]
        assert rest == ["one", "two", delimiter]

    def test_write_summary(self, tmp_path: Path) -> None:
        path = tmp_path / "summary.md"
        assert write_summary("## Hi\n", str(path)) is True
        assert write_summary("more\n", str(path)) is True
        assert path.read_text() == "## Hi\nmore\n"

    def test_no_summary_file(self) -> None:
        assert write_summary("## Hi\n", None) is False
