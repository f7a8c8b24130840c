"""
Domain-specific errors for the prediction bounded context.

All errors raised from the domain and its adapters are defined here.
They are mapped to HTTP responses (or terminal stream events) at the
interface layer. No framework imports allowed.
"""


class PredictionDomainError(Exception):
    """Base error for all prediction domain errors."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class InvalidCodeError(PredictionDomainError):
    """Raised when a request does not carry an instrument code."""

    def __init__(self, code: str = "") -> None:
        super().__init__("missing code" if not code else f"Invalid code: {code}")
        self.code = code


class QuoteFetchError(PredictionDomainError):
    """Raised by a quote source when a snapshot cannot be produced."""

    def __init__(self, target: str, reason: str) -> None:
        super().__init__(f"Quote fetch failed for {target}: {reason}")
        self.target = target
        self.reason = reason


class CredentialsMissingError(PredictionDomainError):
    """Raised when no LLM API key is configured."""

    def __init__(self) -> None:
        super().__init__("ZHIPU_API_KEY or LLM_API_KEY is not configured")


class CompletionError(PredictionDomainError):
    """Base error for failures talking to the completion provider."""


class CompletionTransportError(CompletionError):
    """Raised when the provider cannot be reached or the connection drops."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"LLM request failed: {reason}")
        self.reason = reason


class CompletionTimeoutError(CompletionError):
    """Raised when the outbound completion deadline expires."""

    def __init__(self, timeout_seconds: float) -> None:
        super().__init__(f"LLM request timed out after {timeout_seconds:g}s")
        self.timeout_seconds = timeout_seconds


class CompletionHTTPError(CompletionError):
    """Raised when the provider answers with a non-success status."""

    def __init__(self, status_code: int, body: str) -> None:
        super().__init__(f"LLM returned {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class CompletionResponseError(CompletionError):
    """Raised when the provider envelope is unusable (parse error, error object, no choices)."""


class EmptyCompletionError(CompletionError):
    """Raised when neither the answer nor the reasoning channel carries text."""

    def __init__(self, finish_reason: str = "") -> None:
        super().__init__(
            "LLM returned empty content (possibly blocked by a content policy "
            "or cut by a length limit; retry later or switch models)"
        )
        self.finish_reason = finish_reason


class RelayClosedError(PredictionDomainError):
    """Raised when emitting into a relay whose consumer has gone away."""

    def __init__(self) -> None:
        super().__init__("stream consumer disconnected")


class BackendUnavailableError(PredictionDomainError):
    """Raised by the gateway when the internal prediction service cannot be reached."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"prediction backend unavailable: {reason}")
        self.reason = reason
