"""
Service layer exceptions.

Transient errors are the ones the orchestrator is allowed to answer from
cache with ``rateLimited=True``.
"""

import httpx

# Lower-cased fragments that mark an error message as a transient upstream condition
TRANSIENT_SIGNATURES = (
    "429",
    "rate limit",
    "too many requests",
    "500",
    "502",
    "503",
    "504",
    "bad gateway",
    "service unavailable",
    "gateway timeout",
    "non-json",
    "timed out",
)


class ServiceError(Exception):
    """Base exception for service layer errors."""

    transient: bool = False

    def __init__(self, message: str, service_id: str | None = None):
        self.service_id = service_id
        super().__init__(message)


class UpstreamError(ServiceError):
    """Upstream answered with a non-2xx status other than an exhausted 429."""

    def __init__(
        self,
        status_code: int,
        body_excerpt: str = "",
        service_id: str | None = None,
    ):
        self.status_code = status_code
        self.body_excerpt = body_excerpt
        self.transient = status_code >= 500
        super().__init__(
            f"Advbox API error: {status_code} - {body_excerpt}",
            service_id=service_id,
        )


class RateLimitError(ServiceError):
    """Rate limit exceeded and retries exhausted."""

    transient = True

    def __init__(
        self,
        service_id: str | None = None,
        attempts: int = 0,
        waited_seconds: float = 0.0,
    ):
        self.attempts = attempts
        self.waited_seconds = waited_seconds
        self.status_code = 429
        super().__init__(
            f"Rate limit exceeded for service '{service_id}' after {attempts} "
            f"attempts ({waited_seconds:.1f}s of backoff)",
            service_id=service_id,
        )


class MalformedResponseError(ServiceError):
    """A 2xx response whose body is not JSON (usually a gateway error page)."""

    transient = True

    def __init__(self, excerpt: str = "", service_id: str | None = None):
        self.excerpt = excerpt
        super().__init__(
            f"API returned non-JSON response: {excerpt[:100]!r}",
            service_id=service_id,
        )


class UnexpectedEnvelopeError(ServiceError):
    """A 2xx JSON body that carries no item list (e.g. `{"error": "..."}`)."""

    transient = True

    def __init__(self, excerpt: str = "", service_id: str | None = None):
        self.excerpt = excerpt
        super().__init__(
            f"API returned an unrecognized payload: {excerpt[:100]!r}",
            service_id=service_id,
        )


class RequestTimeoutError(ServiceError):
    """Request timed out."""

    transient = True

    def __init__(self, service_id: str | None, timeout: float):
        self.timeout = timeout
        super().__init__(
            f"Request to service '{service_id}' timed out after {timeout}s",
            service_id=service_id,
        )


class ServiceUnavailableError(ServiceError):
    """Service is temporarily unavailable (connection refused, DNS, reset)."""

    transient = True


def is_transient_error(error: BaseException) -> bool:
    """
    Decide whether a fetch failure should degrade to cached data.

    Typed service errors carry their own classification; anything else is
    matched against the known transient message signatures.
    """
    if isinstance(error, ServiceError):
        return error.transient
    if isinstance(error, httpx.TransportError):
        return True

    message = str(error).lower()
    return any(signature in message for signature in TRANSIENT_SIGNATURES)
