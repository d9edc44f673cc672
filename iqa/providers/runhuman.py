"""RunHuman API client: issue analysis and human QA jobs."""

import logging

import httpx

from iqa.errors import AuthenticationError, NetworkError, ServiceError
from iqa.models import AnalysisResult, JobStatus, LinkedIssue, OutputField
from iqa.providers.base import TestingService
from iqa.settings import IqaSettings

logger = logging.getLogger(__name__)

USER_AGENT = "iqa-issue-tester/1.0.0"
ANALYZE_TIMEOUT = 60  # seconds; the model call behind /analyze-issue is slow
REQUEST_TIMEOUT = 30

_AUTH_FAILED = (
    "Authentication failed: Invalid API key. Make sure your RUNHUMAN_API_KEY secret is set correctly."
)


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or "(empty response body)"
    if isinstance(data, dict):
        return str(data.get("error") or data.get("message") or data)
    return str(data)


class RunHumanClient(TestingService):
    def __init__(self, settings: IqaSettings) -> None:
        self._api_url = settings.api_url
        self._headers = {
            "Authorization": f"Bearer {settings.api_key.get_secret_value()}",
            "User-Agent": USER_AGENT,
        }

    def analyze_issue(
        self,
        issue: LinkedIssue,
        preset_url: str | None = None,
        repo: str | None = None,
    ) -> AnalysisResult:
        logger.debug('Analyzing issue #%d: "%s"', issue.number, issue.title)
        body: dict = {
            "issueTitle": issue.title,
            "issueBody": issue.body,
            "issueLabels": issue.labels,
        }
        if preset_url:
            body["presetTestUrl"] = preset_url
        if repo:
            body["githubRepo"] = repo

        response = httpx.post(
            f"{self._api_url}/api/analyze-issue",
            headers=self._headers,
            json=body,
            timeout=ANALYZE_TIMEOUT,
        )
        if response.status_code == 401:
            raise AuthenticationError(_AUTH_FAILED)
        if response.is_error:
            raise ServiceError(
                f"Issue analysis failed ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )

        analysis = AnalysisResult.model_validate(response.json())
        logger.debug("Analysis complete: is_testable=%s, confidence=%s", analysis.is_testable, analysis.confidence)
        return analysis

    def create_job(
        self,
        url: str,
        description: str,
        output_schema: dict[str, OutputField],
        target_duration_minutes: int,
        validation_instructions: str,
    ) -> str:
        endpoint = f"{self._api_url}/api/jobs"
        logger.info("Creating QA test job for %s...", url)
        response = httpx.post(
            endpoint,
            headers=self._headers,
            json={
                "url": url,
                "description": description,
                "outputSchema": {name: field.model_dump() for name, field in output_schema.items()},
                "targetDurationMinutes": target_duration_minutes,
                "additionalValidationInstructions": validation_instructions,
            },
            timeout=REQUEST_TIMEOUT,
        )
        if response.is_error:
            logger.error(
                "Failed to create job: status=%d url=%s body=%s",
                response.status_code,
                endpoint,
                response.text or "(empty)",
            )
            if response.status_code == 401:
                raise AuthenticationError(_AUTH_FAILED)
            raise ServiceError(
                f"Failed to create job ({response.status_code}): {_error_message(response)}",
                status_code=response.status_code,
            )

        job_id = response.json().get("jobId")
        if not job_id:
            raise ServiceError("API did not return a job ID")
        logger.info("Job created: %s", job_id)
        return str(job_id)

    def get_job_status(self, job_id: str) -> JobStatus:
        endpoint = f"{self._api_url}/api/jobs/{job_id}"
        try:
            response = httpx.get(endpoint, headers=self._headers, timeout=REQUEST_TIMEOUT)
        except httpx.TransportError as exc:
            raise NetworkError(f"Network error checking job status at {endpoint}: {exc!r}") from exc

        if response.status_code == 401:
            raise AuthenticationError(_AUTH_FAILED)
        if response.status_code == 404:
            raise ServiceError(f"Job {job_id} not found", status_code=404)
        if response.is_error:
            raise ServiceError(
                f"Failed to get job status ({response.status_code}): {response.text or response.reason_phrase}",
                status_code=response.status_code,
            )
        return JobStatus.model_validate(response.json())
