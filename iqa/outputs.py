"""GitHub Actions step outputs and job summary."""

import json
import uuid
from pathlib import Path

from iqa.models import ActionResults


def build_outputs(results: ActionResults) -> dict[str, str]:
    return {
        "tested-issues": json.dumps(results.tested_issues),
        "passed-issues": json.dumps(results.passed_issues),
        "failed-issues": json.dumps(results.failed_issues),
        "skipped-issues": json.dumps(results.skipped_issues),
        "total-cost-usd": f"{results.total_cost_usd:.4f}",
        "results": json.dumps(
            [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in results.results]
        ),
    }


def _format_output(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}={value}\n"
    delimiter = f"ghadelimiter_{uuid.uuid4()}"
    return f"{name}<<{delimiter}\n{value}\n{delimiter}\n"


def write_outputs(results: ActionResults, path: str | None) -> bool:
    """Append the run outputs to the $GITHUB_OUTPUT file. Returns False when there is none."""
    if not path:
        return False
    with Path(path).open("a", encoding="utf-8") as fh:
        for name, value in build_outputs(results).items():
            fh.write(_format_output(name, value))
    return True


def write_summary(markdown: str, path: str | None) -> bool:
    """Append markdown to the $GITHUB_STEP_SUMMARY file. Returns False when there is none."""
    if not path:
        return False
    with Path(path).open("a", encoding="utf-8") as fh:
        fh.write(markdown)
    return True
