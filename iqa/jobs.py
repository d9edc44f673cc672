"""Human QA job lifecycle: create, poll until terminal, normalise.

A job moves pending -> in_progress -> one of completed / error / abandoned /
incomplete. The poller fetches its status on a fixed cadence and gives up
after a wall-clock ceiling; giving up raises ``PollTimeoutError`` so a caller
can tell "never finished" apart from any terminal status.
"""

import logging
import time
from collections.abc import Callable

from iqa.errors import NetworkError, PollTimeoutError, ServiceError
from iqa.models import JobStatus, LinkedIssue, OutputField, PRComment, PRContext, TestOutcome
from iqa.providers.base import TestingService

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 60
MAX_POLL_SECONDS = 20 * 60

# The job's validation-instructions field has a practical size ceiling.
ISSUE_BODY_LIMIT = 2000
PR_BODY_LIMIT = 1500
COMMENT_BODY_LIMIT = 500
MAX_COMMENTS = 10
TRUNCATION_MARKER = "... (truncated)"


# ---------------------------------------------------------------------------
# Validation context
# ---------------------------------------------------------------------------


def truncate_text(text: str | None, limit: int) -> str:
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def format_issue_section(issue: LinkedIssue) -> str:
    labels = ", ".join(issue.labels) or "None"
    return "\n".join(
        [
            "=== Original Issue Context ===",
            f"Title: {issue.title}",
            f"Labels: {labels}",
            "",
            "Issue Description:",
            truncate_text(issue.body, ISSUE_BODY_LIMIT),
        ]
    )


def format_comments(comments: list[PRComment]) -> str:
    if not comments:
        return ""
    rendered = []
    for comment in comments[:MAX_COMMENTS]:
        kind = "review" if comment.is_review_comment else "comment"
        rendered.append(f"@{comment.author} ({kind}):\n{truncate_text(comment.body, COMMENT_BODY_LIMIT)}")
    text = "\n\nDiscussion:\n" + "\n\n".join(rendered)
    if len(comments) > MAX_COMMENTS:
        text += f"\n\n({len(comments) - MAX_COMMENTS} additional comments not shown)"
    return text


def format_pr_section(pr: PRContext) -> str:
    header = "\n".join(
        [
            "",
            "",
            "=== Pull Request Context ===",
            f"PR #{pr.number}: {pr.title}",
            f"Author: @{pr.author}",
            "",
            "PR Description:",
            truncate_text(pr.body, PR_BODY_LIMIT),
        ]
    )
    return header + format_comments(pr.comments)


def format_testing_context(issue: LinkedIssue, pr_context: PRContext | None) -> str:
    """Issue (and merged PR) context the service uses to validate the tester's findings."""
    pr_section = format_pr_section(pr_context) if pr_context else ""
    scope = "original issue and PR context" if pr_context else "original issue"
    return (
        f"{format_issue_section(issue)}{pr_section}\n\n"
        "When validating the test results, consider whether the tester's findings align with the "
        f"expectations and requirements described in the {scope} above. The test should be marked "
        "as passing only if the issue appears to be properly resolved or the feature works as described."
    )


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------


def poll_for_completion(
    service: TestingService,
    job_id: str,
    *,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    max_duration: float = MAX_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> JobStatus:
    """Fetch the job status every ``poll_interval`` seconds until it is terminal.

    Network and HTTP failures while fetching are logged and polled through;
    only the ``max_duration`` ceiling ends the loop without a terminal status.
    Authentication failures propagate immediately.
    """
    started = clock()
    last_status: str | None = None

    while True:
        elapsed = clock() - started
        if elapsed > max_duration:
            raise PollTimeoutError(job_id, last_status, round(max_duration / 60))

        try:
            status = service.get_job_status(job_id)
        except NetworkError as exc:
            logger.warning("Job %s: network error while polling (%ds elapsed): %s", job_id, elapsed, exc)
        except ServiceError as exc:
            logger.warning(
                "Job %s: HTTP %s while polling (%ds elapsed): %s", job_id, exc.status_code, elapsed, exc
            )
        else:
            if status.status != last_status:
                logger.info("Job %s status: %s (%ds elapsed)", job_id, status.status, elapsed)
            else:
                logger.debug("Job %s status: %s (%ds elapsed)", job_id, status.status, elapsed)
            last_status = status.status
            if status.is_terminal:
                return status

        sleep(poll_interval)


def normalize_status(status: JobStatus) -> TestOutcome:
    return TestOutcome(
        job_id=status.id,
        status=status.status,
        result=status.result,
        error=status.error or status.reason,
        cost_usd=status.cost_usd,
        test_duration_seconds=status.test_duration_seconds,
        tester_data=status.tester_data,
    )


def run_test(
    service: TestingService,
    test_url: str,
    instructions: str,
    output_schema: dict[str, OutputField],
    target_duration_minutes: int,
    validation_context: str,
    *,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    max_duration: float = MAX_POLL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> TestOutcome:
    """Create a QA job for ``test_url`` and block until it finishes."""
    job_id = service.create_job(
        url=test_url,
        description=instructions,
        output_schema=output_schema,
        target_duration_minutes=target_duration_minutes,
        validation_instructions=validation_context,
    )

    logger.info("Waiting for job %s to complete (max %d minutes)...", job_id, max_duration // 60)
    final = poll_for_completion(
        service,
        job_id,
        poll_interval=poll_interval,
        max_duration=max_duration,
        sleep=sleep,
        clock=clock,
    )
    outcome = normalize_status(final)

    if outcome.status == "completed":
        logger.info("Job %s completed", job_id)
    else:
        logger.warning("Job %s ended with status: %s", job_id, outcome.status)
        if final.error:
            logger.warning("Error: %s", final.error)
        if final.reason:
            logger.warning("Reason: %s", final.reason)

    logger.debug("Test complete: status=%s, passed=%s", outcome.status, outcome.passed)
    return outcome
