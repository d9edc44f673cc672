"""IQA CLI — all commands."""

from typing import Annotated

import httpx
import typer
from rich import print as rprint
from rich.markup import escape
from rich.table import Table

from iqa.log import configure_logging
from iqa.models import ActionResults
from iqa.outputs import write_outputs, write_summary
from iqa.providers.base import IssueSource, TestingService
from iqa.providers.github import GitHubProvider
from iqa.providers.runhuman import RunHumanClient
from iqa.references import extract_issue_numbers, is_valid_pattern
from iqa.render import build_summary, describe_result
from iqa.resolver import load_event, trigger_from_event
from iqa.runner import run_action
from iqa.settings import IqaSettings, get_settings

app = typer.Typer(help="iqa: human QA testing for issues closed by merged pull requests", no_args_is_help=True)

VerboseOpt = Annotated[bool, typer.Option("--verbose", "-v", help="Debug logging")]


# ---------------------------------------------------------------------------
# Collaborator factories
# ---------------------------------------------------------------------------


def get_issue_source(settings: IqaSettings) -> IssueSource:
    return GitHubProvider(settings)


def get_testing_service(settings: IqaSettings) -> TestingService:
    return RunHumanClient(settings)


# ---------------------------------------------------------------------------
# Result display
# ---------------------------------------------------------------------------


def _print_results(results: ActionResults) -> None:
    table = Table(title="Issue Test Results")
    table.add_column("Issue", style="cyan")
    table.add_column("Status")
    table.add_column("Detail")

    styles = {"tested": "green", "skipped": "dim", "error": "red"}
    for result in results.results:
        style = styles[result.status]
        if result.status == "tested" and not result.passed:
            style = "yellow"
        table.add_row(f"#{result.issue_number}", f"[{style}]{result.status}[/{style}]", escape(describe_result(result)))

    rprint(table)
    rprint(
        f"Tested {len(results.tested_issues)}, passed {len(results.passed_issues)}, "
        f"failed {len(results.failed_issues)}, skipped {len(results.skipped_issues)}, "
        f"cost ${results.total_cost_usd:.4f}"
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("run")
def run_cmd(
    issue_number: Annotated[
        int | None,
        typer.Option("--issue-number", "-i", min=1, help="Test this issue only, skipping PR discovery"),
    ] = None,
    test_url: Annotated[str | None, typer.Option("--test-url", help="Override the AI-detected test URL")] = None,
    pr_number: Annotated[
        int | None,
        typer.Option("--pr-number", min=1, help="Merged PR to read linked issues from"),
    ] = None,
    verbose: VerboseOpt = False,
) -> None:
    """Test the issues closed by the merged PR (or one explicit issue) and report back."""
    configure_logging(verbose)
    settings = get_settings(issue_number=issue_number, test_url=test_url, pr_number=pr_number)

    try:
        source = get_issue_source(settings)
        service = get_testing_service(settings)
        trigger = trigger_from_event(
            load_event(settings.github_event_path),
            issue_number=settings.issue_number,
            pr_number=settings.pr_number,
            commit_sha=settings.github_sha,
        )
        results = run_action(settings, source, service, trigger)
    except (RuntimeError, ValueError, httpx.HTTPError) as exc:
        rprint(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(1) from exc

    write_outputs(results, settings.github_output)
    if results.results:
        write_summary(build_summary(results), settings.github_step_summary)
        _print_results(results)

    if results.all_errored:
        rprint("[red]All tests failed due to system errors[/red]")
        raise typer.Exit(1)


@app.command("extract-refs")
def extract_refs(
    message: Annotated[str, typer.Argument(help="Commit message to scan")],
    pattern: Annotated[
        str | None,
        typer.Option("--pattern", "-p", help="Extra regex; first group (or whole match) is the issue number"),
    ] = None,
) -> None:
    """Print the issue numbers a commit message references."""
    if pattern and not is_valid_pattern(pattern):
        rprint(f"[yellow]Warning:[/yellow] invalid pattern {escape(repr(pattern))}, using built-in keywords only")
    numbers = sorted(extract_issue_numbers(message, pattern))
    typer.echo(" ".join(f"#{n}" for n in numbers) if numbers else "(none)")


@app.command("config-show")
def config_show() -> None:
    """Show resolved configuration (masks credentials)."""
    settings = get_settings()

    def mask(val: str, prefix: str = "") -> str:
        if len(val) <= len(prefix) + 5:
            return "***"
        return f"{prefix}...{val[-5:]}"

    def show(val: object) -> str:
        return "[dim](not set)[/dim]" if val is None else escape(str(val))

    table = Table(title="IQA Configuration")
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("api_key", mask(settings.api_key.get_secret_value(), prefix="qa_live_"))
    table.add_row("github_token", mask(settings.github_token.get_secret_value()))
    table.add_row("api_url", settings.api_url)
    table.add_row("qa_label", settings.qa_label)
    table.add_row("auto_detect", show(settings.auto_detect))
    table.add_row("target_duration_minutes", show(settings.target_duration_minutes))
    table.add_row("reopen_on_failure", show(settings.reopen_on_failure))
    table.add_row("failure_label", settings.failure_label or "[dim](not set)[/dim]")
    table.add_row("remove_failure_label_on_success", show(settings.remove_failure_label_on_success))
    table.add_row("issue_number", show(settings.issue_number))
    table.add_row("pr_number", show(settings.pr_number))
    table.add_row("test_url", show(settings.test_url))
    table.add_row("issue_pattern", show(settings.issue_pattern))
    table.add_row("github_repository", show(settings.github_repository))

    rprint(table)
