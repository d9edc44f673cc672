"""Run configuration: IQA_* environment variables, .env, and the GitHub runner context."""

from urllib.parse import urlparse

import typer
from pydantic import AliasChoices, Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from iqa.references import is_valid_pattern

API_KEY_PREFIX = "qa_live_"
DEFAULT_API_URL = "https://runhuman.com"


def _runner_env(name: str) -> AliasChoices:
    # GitHub sets these unprefixed; IQA_* wins so runs can be reproduced locally.
    return AliasChoices(f"IQA_{name}", name)


class IqaSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="IQA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
        populate_by_name=True,
    )

    # Credentials
    api_key: SecretStr
    github_token: SecretStr

    # Testing service
    api_url: str = DEFAULT_API_URL
    target_duration_minutes: int = Field(default=5, ge=1, le=60)

    # Issue selection
    qa_label: str = "qa-test"
    auto_detect: bool = True
    issue_number: int | None = Field(default=None, ge=1)  # bypasses PR discovery
    pr_number: int | None = Field(default=None, ge=1)
    issue_pattern: str | None = None  # extra commit-message regex
    test_url: str | None = None  # overrides the AI-detected URL

    # Issue state on result
    reopen_on_failure: bool = True
    failure_label: str = "qa-failed"
    remove_failure_label_on_success: bool = True

    # GitHub runner context
    github_repository: str | None = Field(default=None, validation_alias=_runner_env("GITHUB_REPOSITORY"))
    github_sha: str | None = Field(default=None, validation_alias=_runner_env("GITHUB_SHA"))
    github_event_path: str | None = Field(default=None, validation_alias=_runner_env("GITHUB_EVENT_PATH"))
    github_output: str | None = Field(default=None, validation_alias=_runner_env("GITHUB_OUTPUT"))
    github_step_summary: str | None = Field(default=None, validation_alias=_runner_env("GITHUB_STEP_SUMMARY"))
    github_api_url: str = Field(default="https://api.github.com", validation_alias=_runner_env("GITHUB_API_URL"))

    @field_validator("api_key")
    @classmethod
    def _check_api_key(cls, value: SecretStr) -> SecretStr:
        if not value.get_secret_value().startswith(API_KEY_PREFIX):
            raise ValueError(
                f'Invalid API key format. API keys must start with "{API_KEY_PREFIX}". '
                "Get your API key from https://runhuman.com/dashboard"
            )
        return value

    @field_validator("test_url")
    @classmethod
    def _check_test_url(cls, value: str | None) -> str | None:
        if value is None:
            return None
        parsed = urlparse(value)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("test_url must be a valid URL (http:// or https://)")
        return value

    @field_validator("issue_pattern")
    @classmethod
    def _check_issue_pattern(cls, value: str | None) -> str | None:
        if value is not None and not is_valid_pattern(value):
            raise ValueError("issue_pattern must be a valid regular expression")
        return value

    @field_validator("api_url", "github_api_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def repo(self) -> tuple[str, str]:
        """(owner, name) of the repository the run acts on."""
        if not self.github_repository or "/" not in self.github_repository:
            raise RuntimeError(
                "Cannot determine the repository. Set GITHUB_REPOSITORY (or IQA_GITHUB_REPOSITORY) to owner/repo."
            )
        owner, name = self.github_repository.split("/", 1)
        return owner, name


def get_settings(**overrides: object) -> IqaSettings:
    """Build settings from the environment; explicit overrides (CLI flags) win.

    Any invalid or missing value is fatal: the problems are echoed and the
    process exits before an issue is touched.
    """
    cleaned = {k: v for k, v in overrides.items() if v is not None}
    try:
        return IqaSettings(**cleaned)  # type: ignore[arg-type]
    except ValidationError as exc:
        typer.echo("Invalid configuration:", err=True)
        for error in exc.errors():
            field = ".".join(str(part) for part in error["loc"]) or "settings"
            typer.echo(f"  {field}: {error['msg']}", err=True)
        raise typer.Exit(1) from exc
