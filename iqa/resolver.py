"""Work out which issues a run should test.

Two independent sources feed the candidate set: the issues GitHub links to
the merged PR as "closed by" it, and closing keywords in the merge commit's
message. They are merged by issue number, PR copies first, so the PR's
label and state data wins whenever both sources name the same issue.
"""

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict

from iqa.errors import DiscoveryError
from iqa.models import IssueTestResult, LinkedIssue
from iqa.providers.base import IssueSource
from iqa.references import extract_issue_numbers

logger = logging.getLogger(__name__)


class Trigger(BaseModel):
    """What started the run."""

    model_config = ConfigDict(frozen=True)

    issue_number: int | None = None  # manual mode
    pr_number: int | None = None
    pr_merged: bool | None = None  # None when the event carries no pull_request
    commit_sha: str | None = None


class Resolution(BaseModel):
    model_config = ConfigDict(frozen=True)

    issues: list[LinkedIssue] = []
    skipped: list[IssueTestResult] = []
    pr_number: int | None = None


def load_event(event_path: str | None) -> dict[str, Any]:
    if not event_path or not Path(event_path).is_file():
        return {}
    return json.loads(Path(event_path).read_text(encoding="utf-8"))


def trigger_from_event(
    event: dict[str, Any],
    *,
    issue_number: int | None = None,
    pr_number: int | None = None,
    commit_sha: str | None = None,
) -> Trigger:
    """Build a Trigger from the workflow event payload plus explicit overrides."""
    pull_request = event.get("pull_request")
    if pr_number is None and pull_request:
        return Trigger(
            issue_number=issue_number,
            pr_number=pull_request.get("number"),
            pr_merged=bool(pull_request.get("merged")),
            commit_sha=pull_request.get("merge_commit_sha") or commit_sha,
        )
    return Trigger(issue_number=issue_number, pr_number=pr_number, commit_sha=commit_sha)


def find_merged_pr_for_commit(source: IssueSource, sha: str) -> int | None:
    """Return the merged PR containing ``sha``, or None.

    When several merged PRs contain the commit, the most recently merged one
    wins and ties go to the lowest PR number. Lookup failures are logged and
    treated as "no PR".
    """
    logger.debug("Looking for merged PR containing commit %s", sha)
    try:
        pulls = source.list_pull_requests_for_commit(sha)
    except Exception as exc:
        logger.warning("Error finding PR for commit %s: %s", sha, exc)
        return None

    merged = [pr for pr in pulls if pr.get("merged_at")]
    if not merged:
        logger.debug("No merged PR found for commit %s", sha)
        return None
    merged.sort(key=lambda pr: (pr["merged_at"], -pr["number"]), reverse=True)
    number = merged[0]["number"]
    logger.info("Found merged PR #%d for commit %s", number, sha)
    return number


def issues_from_commit_message(source: IssueSource, sha: str, pattern: str | None) -> list[LinkedIssue]:
    """Fetch every existing issue the commit message references with a closing keyword."""
    try:
        message = source.get_commit_message(sha)
    except Exception as exc:
        logger.warning("Error fetching commit message for %s: %s", sha, exc)
        return []

    numbers = sorted(extract_issue_numbers(message, pattern))
    if not numbers:
        logger.debug("No issue references found in commit message")
        return []
    logger.info(
        "Found %d issue reference(s) in commit message: %s",
        len(numbers),
        ", ".join(f"#{n}" for n in numbers),
    )

    issues = []
    for number in numbers:
        try:
            issue = source.get_issue(number)
        except Exception as exc:
            logger.warning("Error fetching issue #%d referenced in commit %s: %s", number, sha, exc)
            continue
        if issue is not None:
            issues.append(issue)
    return issues


def merge_issues(*sources: list[LinkedIssue]) -> list[LinkedIssue]:
    """Union by issue number, keeping the first copy seen."""
    merged: dict[int, LinkedIssue] = {}
    for issues in sources:
        for issue in issues:
            merged.setdefault(issue.number, issue)
    return list(merged.values())


def gate_by_label(
    issues: list[LinkedIssue],
    qa_label: str,
    auto_detect: bool,
) -> tuple[list[LinkedIssue], list[IssueTestResult]]:
    """Split issues into (to process, skipped).

    Labeled issues always go through, labeled first. Unlabeled ones go
    through only when auto-detect lets the classifier decide.
    """
    labeled = [issue for issue in issues if issue.has_label(qa_label)]
    unlabeled = [issue for issue in issues if not issue.has_label(qa_label)]

    if labeled:
        logger.info('Found %d issue(s) with "%s" label (will be tested)', len(labeled), qa_label)
    if auto_detect:
        if unlabeled:
            logger.info("Auto-detect enabled: %d unlabeled issue(s) will be evaluated by AI", len(unlabeled))
        return labeled + unlabeled, []

    skipped = []
    for issue in unlabeled:
        logger.info('Skipping issue #%d: missing "%s" label (auto-detect disabled)', issue.number, qa_label)
        skipped.append(
            IssueTestResult(
                issue_number=issue.number,
                status="skipped",
                skip_reason=f'Missing "{qa_label}" label',
            )
        )
    return labeled, skipped


def resolve_issues(
    source: IssueSource,
    trigger: Trigger,
    *,
    qa_label: str,
    auto_detect: bool,
    issue_pattern: str | None = None,
) -> Resolution:
    if trigger.issue_number is not None:
        logger.info("Manual mode: testing issue #%d", trigger.issue_number)
        issue = source.get_issue(trigger.issue_number)
        if issue is None:
            raise DiscoveryError(f"Issue #{trigger.issue_number} not found or is a pull request")
        return Resolution(issues=[issue])

    if trigger.pr_merged is False:
        logger.info("Pull request #%s was not merged, skipping", trigger.pr_number)
        return Resolution(pr_number=trigger.pr_number)

    pr_number = trigger.pr_number
    if pr_number is None and trigger.commit_sha:
        logger.info("No pull request in the event, searching for a merged PR from the commit...")
        pr_number = find_merged_pr_for_commit(source, trigger.commit_sha)

    pr_issues = source.list_closing_issues(pr_number) if pr_number is not None else []
    if pr_issues:
        logger.info("Found %d issue(s) linked to PR #%d", len(pr_issues), pr_number)

    commit_issues = (
        issues_from_commit_message(source, trigger.commit_sha, issue_pattern) if trigger.commit_sha else []
    )

    candidates = merge_issues(pr_issues, commit_issues)
    if not candidates:
        logger.info("No linked issues found, nothing to test")
        return Resolution(pr_number=pr_number)

    issues, skipped = gate_by_label(candidates, qa_label, auto_detect)
    return Resolution(issues=issues, skipped=skipped, pr_number=pr_number)
