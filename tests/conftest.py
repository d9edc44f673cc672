"""Shared test fixtures."""

import logging
from datetime import datetime, timezone

import pytest

from iqa.models import AnalysisResult, LinkedIssue, OutputField, PRComment, PRContext
from iqa.settings import IqaSettings

API_KEY = "qa_live_testkey123456"


def _make_settings(**kwargs) -> IqaSettings:
    defaults = {
        "api_key": API_KEY,
        "github_token": "ghp_test",
        "api_url": "https://runhuman.test",
        "github_repository": "acme/shop",
        "github_sha": "abc123",
        "github_event_path": None,
        "github_output": None,
        "github_step_summary": None,
        "github_api_url": "https://api.github.com",
    }
    defaults.update(kwargs)
    return IqaSettings(_env_file=None, **defaults)  # type: ignore[call-arg]


@pytest.fixture(autouse=True)
def reset_iqa_logger():
    """configure_logging() detaches the iqa logger from caplog; undo it after each test."""
    yield
    logger = logging.getLogger("iqa")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def make_settings():
    """Factory for settings that ignore the process environment's .env file."""
    return _make_settings


@pytest.fixture
def settings() -> IqaSettings:
    return _make_settings()


@pytest.fixture
def issue() -> LinkedIssue:
    return LinkedIssue(
        number=42,
        title="Checkout button does nothing on mobile",
        body="Tapping Checkout on iOS Safari does nothing.",
        state="CLOSED",
        labels=["bug", "qa-test"],
    )


@pytest.fixture
def analysis() -> AnalysisResult:
    return AnalysisResult(
        is_testable=True,
        test_url="https://staging.example.com",
        test_instructions="Open the cart on a phone and tap Checkout.",
        output_schema={"checkoutWorks": OutputField(type="boolean", description="Does checkout open?")},
        confidence=0.95,
    )


@pytest.fixture
def pr_context() -> PRContext:
    return PRContext(
        number=7,
        title="Fix checkout tap target",
        body="Enlarges the button hit area.",
        author="alice",
        comments=[
            PRComment(
                body="Verified on my phone.",
                author="bob",
                created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc),
            ),
        ],
    )
