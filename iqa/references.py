"""Issue references in commit messages.

Only GitHub's closing keywords count: ``Fixes #12`` matches, a bare ``#12``
does not, so merging a commit that merely mentions an issue never tests or
closes it.
"""

import logging
import re

logger = logging.getLogger(__name__)

# https://docs.github.com/en/issues/tracking-your-work-with-issues/linking-a-pull-request-to-an-issue
CLOSING_KEYWORD_PATTERN = re.compile(r"(?:close[sd]?|fix(?:e[sd])?|resolve[sd]?)\s*#(\d+)", re.IGNORECASE)


def is_valid_pattern(pattern: str) -> bool:
    try:
        re.compile(pattern)
    except re.error:
        return False
    return True


def extract_issue_numbers(message: str, custom_pattern: str | None = None) -> set[int]:
    """Return every issue number referenced in ``message``.

    ``custom_pattern`` is an extra case-insensitive regex; its first capture
    group (or the whole match when it has none) must parse as a positive
    integer, anything else is dropped. A pattern that does not compile is
    logged and ignored.
    """
    numbers = {int(match.group(1)) for match in CLOSING_KEYWORD_PATTERN.finditer(message)}

    if not custom_pattern:
        return numbers

    try:
        custom = re.compile(custom_pattern, re.IGNORECASE)
    except re.error as exc:
        logger.warning("Invalid custom issue pattern %r: %s", custom_pattern, exc)
        return numbers

    for match in custom.finditer(message):
        raw = (custom.groups and match.group(1)) or match.group(0)
        raw = raw.strip()
        if raw.isdecimal() and int(raw) > 0:
            numbers.add(int(raw))
    return numbers
