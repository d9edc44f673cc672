"""Post a verdict back to its issue: comment, state, labels.

Every side effect runs on its own. A failed comment does not stop the state
change and vice versa; failures come back as messages for the issue's
result record instead of propagating.
"""

import logging
from collections.abc import Callable

from iqa.models import AnalysisResult, TestOutcome
from iqa.providers.base import IssueSource
from iqa.render import build_test_result_comment

logger = logging.getLogger(__name__)


def ensure_issue_closed(source: IssueSource, number: int) -> None:
    if source.get_issue_state(number) == "OPEN":
        source.update_issue_state(number, "closed")
        logger.info("Closed issue #%d", number)
    else:
        logger.debug("Issue #%d is already closed", number)


def reopen_issue(source: IssueSource, number: int) -> None:
    source.update_issue_state(number, "open")
    logger.info("Reopened issue #%d", number)


def add_label(source: IssueSource, number: int, label: str) -> None:
    source.add_labels(number, [label])
    logger.info('Added label "%s" to issue #%d', label, number)


def remove_label(source: IssueSource, number: int, label: str) -> None:
    source.remove_label(number, label)
    logger.info('Ensured label "%s" is absent from issue #%d', label, number)


def post_result_comment(
    source: IssueSource,
    number: int,
    outcome: TestOutcome,
    analysis: AnalysisResult,
    *,
    reopened: bool,
) -> None:
    source.create_comment(number, build_test_result_comment(outcome, analysis, reopened=reopened))
    logger.info("Posted test result comment to issue #%d", number)


def dispatch_result(
    source: IssueSource,
    number: int,
    outcome: TestOutcome,
    analysis: AnalysisResult,
    *,
    reopen_on_failure: bool,
    failure_label: str | None,
    remove_failure_label_on_success: bool,
) -> list[str]:
    """Apply the pass/fail side effects for one issue and return any failures.

    State and label changes run first so the comment, posted last, describes
    what actually happened to the issue.
    """
    steps: list[tuple[str, Callable[[], None]]] = []
    if outcome.passed:
        steps.append(("close issue", lambda: ensure_issue_closed(source, number)))
        if remove_failure_label_on_success and failure_label:
            steps.append(("remove label", lambda: remove_label(source, number, failure_label)))
    else:
        if reopen_on_failure:
            steps.append(("reopen issue", lambda: reopen_issue(source, number)))
        if failure_label:
            steps.append(("add label", lambda: add_label(source, number, failure_label)))

    failures = []
    reopened = False
    for name, step in steps:
        try:
            step()
        except Exception as exc:
            logger.warning("Issue #%d: failed to %s: %s", number, name, exc)
            failures.append(f"Failed to {name}: {exc}")
        else:
            if name == "reopen issue":
                reopened = True

    try:
        post_result_comment(source, number, outcome, analysis, reopened=reopened)
    except Exception as exc:
        logger.warning("Issue #%d: failed to post comment: %s", number, exc)
        failures.append(f"Failed to post comment: {exc}")
    return failures
