"""One run: resolve issues, then analyze, test and report on each in turn."""

import logging
import time
from collections.abc import Callable

from iqa.actions import dispatch_result
from iqa.errors import PollTimeoutError
from iqa.jobs import format_testing_context, run_test
from iqa.models import ActionResults, IssueTestResult, LinkedIssue, PRContext
from iqa.providers.base import IssueSource, TestingService
from iqa.resolver import Trigger, resolve_issues
from iqa.settings import IqaSettings

logger = logging.getLogger(__name__)

NO_URL_REASON = "No testable URL found in issue (provide test-url input to override)"


def fetch_pr_context(source: IssueSource, pr_number: int | None) -> PRContext | None:
    if pr_number is None:
        return None
    try:
        context = source.get_pull_request_context(pr_number)
    except Exception as exc:
        logger.warning("Failed to fetch PR #%d context: %s", pr_number, exc)
        return None
    logger.info("Fetched PR #%d context: %d comment(s)", pr_number, len(context.comments))
    return context


def process_issue(
    issue: LinkedIssue,
    settings: IqaSettings,
    source: IssueSource,
    service: TestingService,
    pr_context: PRContext | None,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> IssueTestResult:
    """Analyze, test and report on one issue. Never raises."""
    result = IssueTestResult(issue_number=issue.number)
    logger.info("--- Processing issue #%d: %s ---", issue.number, issue.title)

    try:
        analysis = service.analyze_issue(issue, preset_url=settings.test_url, repo=settings.github_repository)
        result.analysis = analysis

        if not analysis.is_testable:
            logger.info("Issue #%d is not testable: %s", issue.number, analysis.reason)
            result.skip_reason = analysis.reason or "Not testable by human"
            return result

        test_url = settings.test_url or analysis.test_url
        if not test_url:
            logger.info("Issue #%d: no testable URL found", issue.number)
            result.skip_reason = NO_URL_REASON
            return result
        if settings.test_url:
            logger.info("Issue #%d: using manual URL override %s", issue.number, settings.test_url)
            analysis = analysis.model_copy(update={"test_url": test_url})
            result.analysis = analysis

        logger.info("Issue #%d: testing %s", issue.number, test_url)
        logger.debug("Instructions: %s", analysis.test_instructions)

        outcome = run_test(
            service,
            test_url,
            analysis.test_instructions,
            analysis.output_schema,
            settings.target_duration_minutes,
            format_testing_context(issue, pr_context),
            sleep=sleep,
            clock=clock,
        )
    except Exception as exc:
        logger.warning("Error processing issue #%d: %s", issue.number, exc)
        result.status = "error"
        result.error = str(exc)
        if isinstance(exc, PollTimeoutError):
            result.job_id = exc.job_id
        return result

    result.status = "tested"
    result.test_result = outcome
    result.job_id = outcome.job_id
    result.passed = outcome.passed
    logger.info("Issue #%d: test %s", issue.number, "PASSED" if result.passed else "FAILED")

    failures = dispatch_result(
        source,
        issue.number,
        outcome,
        analysis,
        reopen_on_failure=settings.reopen_on_failure,
        failure_label=settings.failure_label,
        remove_failure_label_on_success=settings.remove_failure_label_on_success,
    )
    if failures:
        result.error = "; ".join(failures)
    return result


def run_action(
    settings: IqaSettings,
    source: IssueSource,
    service: TestingService,
    trigger: Trigger,
    *,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> ActionResults:
    """Resolve the trigger's issues and process them one at a time.

    Raises ``DiscoveryError`` when an explicitly requested issue does not exist;
    every per-issue problem is recorded in the returned results instead.
    """
    results = ActionResults()
    resolution = resolve_issues(
        source,
        trigger,
        qa_label=settings.qa_label,
        auto_detect=settings.auto_detect,
        issue_pattern=settings.issue_pattern,
    )
    for skipped in resolution.skipped:
        results.record(skipped)

    if not resolution.issues:
        logger.info("No testable issues found")
        return results

    pr_context = fetch_pr_context(source, resolution.pr_number)

    logger.info("Processing %d issue(s)", len(resolution.issues))
    for issue in resolution.issues:
        results.record(process_issue(issue, settings, source, service, pr_context, sleep=sleep, clock=clock))
    return results
