"""Markdown rendering for issue comments and the run summary."""

import json
from typing import Any

from iqa.models import ActionResults, AnalysisResult, IssueTestResult, TestOutcome

FOOTER = "<sub>Powered by [RunHuman](https://runhuman.com) - Human-powered QA testing</sub>"


def format_value(value: Any) -> str:
    """Render one extracted-data value for the results table."""
    if value is True:
        return "✅ Yes"
    if value is False:
        return "❌ No"
    if value is None:
        return "N/A"
    if isinstance(value, dict | list):
        return f"`{json.dumps(value)}`"
    return str(value)


def _quote(text: str) -> str:
    return "\n".join(f"> {line}" for line in text.splitlines() or [""])


def build_test_result_comment(outcome: TestOutcome, analysis: AnalysisResult, *, reopened: bool = True) -> str:
    passed = outcome.passed
    status = "✅ QA Test PASSED" if passed else "❌ QA Test FAILED"
    duration = f"{outcome.test_duration_seconds:.0f}s" if outcome.test_duration_seconds else "N/A"
    cost = f"${outcome.cost_usd:.4f}" if outcome.cost_usd else "N/A"
    explanation = (outcome.result.explanation if outcome.result else "") or outcome.error or "No explanation provided"

    lines = [
        f"## {status}",
        "",
        f"**Tested URL:** {analysis.test_url or 'N/A'}",
        f"**Duration:** {duration}",
        f"**Cost:** {cost}",
        f"**Confidence:** {analysis.confidence * 100:.0f}%",
    ]
    if outcome.status != "completed":
        lines.append(f"**Job Status:** {outcome.status}")
    lines += [
        "",
        "---",
        "",
        "### Test Instructions",
        "",
        _quote(analysis.test_instructions),
        "",
        "---",
        "",
        "### Tester Findings",
        "",
        _quote(explanation),
        "",
    ]

    if outcome.result and outcome.result.data:
        lines += ["### Test Results", "", "| Field | Value |", "|-------|-------|"]
        lines += [f"| {key} | {format_value(value)} |" for key, value in outcome.result.data.items()]
        lines.append("")

    tester = outcome.tester_data
    if tester and tester.screenshots:
        lines += ["### Screenshots", ""]
        for index, url in enumerate(tester.screenshots, start=1):
            lines += [f"![Screenshot {index}]({url})", ""]

    if tester and tester.video_url:
        lines += ["### Session Recording", "", f"[View Video Recording]({tester.video_url})", ""]

    if passed:
        action = "Test passed. Issue confirmed as resolved."
    elif reopened:
        action = "This issue has been reopened because the QA test failed."
    else:
        action = "QA test failed. Issue state left unchanged."
    lines += ["---", "", f"**Action Taken:** {action}", "", "---", "", FOOTER, ""]

    return "\n".join(lines)


def _status_emoji(result: IssueTestResult) -> str:
    if result.status == "tested":
        return "✅" if result.passed else "❌"
    if result.status == "skipped":
        return "⏭️"
    return "⚠️"


def describe_result(result: IssueTestResult) -> str:
    """One-line status for the run summary."""
    if result.status == "tested":
        text = "Passed" if result.passed else "Failed"
        if result.test_result and result.test_result.cost_usd:
            text += f" (${result.test_result.cost_usd:.4f})"
        return text
    if result.status == "skipped":
        return f"Skipped - {result.skip_reason}"
    return f"Error - {result.error}"


def build_summary(results: ActionResults) -> str:
    lines = [
        "## Issue Test Results",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Tested | {len(results.tested_issues)} |",
        f"| Passed | {len(results.passed_issues)} |",
        f"| Failed | {len(results.failed_issues)} |",
        f"| Skipped | {len(results.skipped_issues)} |",
        f"| Total Cost | ${results.total_cost_usd:.4f} |",
        "",
    ]
    if results.results:
        lines += ["### Details", ""]
        for result in results.results:
            lines.append(f"{_status_emoji(result)} **Issue #{result.issue_number}**: {describe_result(result)}")
            lines.append("")
    lines += ["---", "", "Powered by [RunHuman](https://runhuman.com)", ""]
    return "\n".join(lines)
