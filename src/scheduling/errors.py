"""Error hierarchy for scheduling retry classification.

Transient failures (rate limits, exhausted quotas) are retried by
``retry_operation``; permanent failures are not. Callers that only expect
"returns False/None" semantics catch ``PermanentError`` and let anything
that survived the retries propagate.

Example usage with tenacity:
    @retry(retry=retry_if_exception(is_rate_limited), stop=stop_after_attempt(5))
    async def commit(batch):
        ...
"""

RATE_LIMIT_CODES: frozenset[str] = frozenset(
    {"resource-exhausted", "resource_exhausted", "429", "too-many-requests"}
)


class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    pass


class TransientError(SchedulingError):
    """Temporary failure that may succeed on retry.

    Examples: network timeouts, 503 Service Unavailable from the store.
    """

    pass


class RateLimitError(TransientError):
    """Store or calendar quota exceeded ("resource-exhausted").

    This is the only class of error the retry wrapper backs off on.
    """

    def __init__(self, message: str = "resource-exhausted", code: str = "resource-exhausted"):
        super().__init__(message)
        self.code = code


class PermanentError(SchedulingError):
    """Failure that won't succeed on retry."""

    pass


class StoreError(PermanentError):
    """The document store rejected an operation (bad write, failed batch)."""

    pass


class DocumentNotFoundError(StoreError):
    """A document addressed by id does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class AuthorizationError(PermanentError):
    """The acting user is not allowed to perform the operation."""

    pass


class CalendarMirrorError(SchedulingError):
    """The external calendar refused or failed a mirror request."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


def is_rate_limited(exc: BaseException) -> bool:
    """Return True if ``exc`` signals a rate-limit / resource-exhausted condition.

    Recognises our own ``RateLimitError`` as well as foreign client errors that
    carry a ``code`` or ``status`` attribute (gRPC-style ``RESOURCE_EXHAUSTED``,
    HTTP 429) or mention ``resource-exhausted`` in their message.
    """
    if isinstance(exc, RateLimitError):
        return True

    for attr in ("code", "status", "status_code"):
        value = getattr(exc, attr, None)
        if value is None:
            continue
        # grpc.StatusCode and similar enums expose .name
        value = getattr(value, "name", value)
        if str(value).lower().replace(" ", "-") in RATE_LIMIT_CODES:
            return True

    return "resource-exhausted" in str(exc).lower()
