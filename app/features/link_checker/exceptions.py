class LinkCheckerError(Exception):
    """Base class for link checker failures."""


class SubmissionValidationError(LinkCheckerError):
    """Submission rejected before any job is created."""


class InvalidURLError(SubmissionValidationError):
    """Target URL is malformed, not http(s), or points at a private network."""


class InvalidModeError(SubmissionValidationError):
    pass


class JobNotFoundError(LinkCheckerError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found or expired")
        self.job_id = job_id


class JobPersistenceError(LinkCheckerError):
    """Reading or writing a job document in the store failed."""


class FetchError(LinkCheckerError):
    """A page could not be retrieved as HTML."""

    def __init__(self, message: str, timed_out: bool = False):
        super().__init__(message)
        self.timed_out = timed_out
