"""Exceptions raised by git-weekly-snapshot."""


class SnapshotError(Exception):
    """Base class for all snapshot errors."""


class InvariantViolation(SnapshotError, AssertionError):
    """A snapshot is internally inconsistent.

    These are programming errors and are never corrected silently.
    """


class SnapshotStoreError(SnapshotError):
    """A snapshot file could not be read, written or locked."""


class ResourceNotFound(SnapshotError):
    """The provider reported that a whole resource does not exist (404)."""

    def __init__(self, resource: str):
        super().__init__(f"Resource not found: {resource}")
        self.resource = resource


class QuotaWaitTimeout(SnapshotError):
    """Waiting for the API quota to reset would exceed the configured ceiling."""

    def __init__(self, wait_seconds: float, max_wait: float):
        super().__init__(
            f"Rate limit reset is {wait_seconds:.0f}s away, "
            f"longer than the allowed {max_wait:.0f}s"
        )
        self.wait_seconds = wait_seconds
        self.max_wait = max_wait


class RepositoryFetchError(SnapshotError):
    """A fatal error occurred while fetching data for one repository."""

    def __init__(self, repository: str, cause: Exception):
        super().__init__(f"{repository}: {cause}")
        self.repository = repository
        self.cause = cause


class RateLimitExceeded(SnapshotError):
    """The provider answered with a rate-limit response (403 or 429)."""

    def __init__(self, resource: str, wait_seconds: float):
        super().__init__(
            f"Rate limit exceeded while fetching {resource}; retry in {wait_seconds:.0f}s"
        )
        self.resource = resource
        self.wait_seconds = wait_seconds
