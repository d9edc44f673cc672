"""Exception types raised by the collaborators and the run loop."""


class IqaError(RuntimeError):
    """Base class for every error iqa raises on purpose."""


class AuthenticationError(IqaError):
    """A collaborator answered 401: the credential is wrong or expired."""


class ServiceError(IqaError):
    """A collaborator answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(IqaError):
    """The request never got an HTTP answer (DNS, connection refused, timeout)."""


class DiscoveryError(IqaError):
    """The explicitly requested issue could not be resolved."""


class PollTimeoutError(IqaError):
    """A job did not reach a terminal state within the polling budget."""

    def __init__(self, job_id: str, last_status: str | None, max_minutes: int) -> None:
        super().__init__(
            f"Job {job_id} did not complete within {max_minutes} minutes. "
            f"Last status: {last_status or 'unknown'}. "
            "The job may still be running - check the RunHuman dashboard."
        )
        self.job_id = job_id
        self.last_status = last_status
