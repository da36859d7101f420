"""Service error taxonomy.

Every failure a caller can see is one of these. Each carries a stable
``kind`` (machine-distinguishable) and the HTTP status it maps to.
"""


class GraphServiceError(Exception):
    """Base class for all service errors."""

    kind = "internal"
    status_code = 500

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": self.kind}


class InvalidArgumentError(GraphServiceError):
    """A required field is missing or malformed. Caller-fixable."""

    kind = "invalid_argument"
    status_code = 400


class NotFoundError(GraphServiceError):
    """A referenced entity does not exist."""

    kind = "not_found"
    status_code = 404


class ConflictError(GraphServiceError):
    """Duplicate entity name, duplicate relation, or stale document version."""

    kind = "conflict"
    status_code = 409


class RateLimitExceededError(GraphServiceError):
    """Raised when an identity has exhausted its quota for an operation class."""

    kind = "rate_limited"
    status_code = 429

    def __init__(
        self,
        identity: str,
        operation_class: str,
        limit: int,
        retry_after: int,
    ):
        self.identity = identity
        self.operation_class = operation_class
        self.limit = limit
        self.retry_after = retry_after

        super().__init__("Rate limit exceeded")

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "kind": self.kind,
            "limit": self.limit,
            "retryAfter": self.retry_after,
        }


class StoreUnavailableError(GraphServiceError):
    """The key-value store failed. Transient; never treated as empty data."""

    kind = "store_unavailable"
    status_code = 503
