"""Error taxonomy shared by the ingestion pipeline, the vector index and the ask service.

Every error is scoped to a single request. The HTTP layer maps ``status_code``
onto the response; the services only raise.
"""


class AppError(Exception):
    """Base class for all application errors."""

    status_code = 500

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail

    def to_dict(self) -> dict:
        body = {"error": self.message, "type": self.__class__.__name__}
        if self.detail:
            body["details"] = self.detail
        return body


class ValidationError(AppError):
    """Missing or malformed required input. Raised before any side effect."""

    status_code = 400


class ConfigurationError(AppError):
    """Missing credential or unsupported provider/model combination."""

    status_code = 400


class AuthenticationError(ConfigurationError):
    """No API credential available for a provider that requires one."""


class NotFoundError(AppError):
    """Referenced conversation, group or file does not exist."""

    status_code = 404


class ExtractionError(AppError):
    """A single file could not be converted to text. Never leaves the extractor."""

    status_code = 422


class ProviderError(AppError):
    """Embedding or LLM call failed.

    Attributes:
        reason (str): One of "auth", "rate_limit", "content_policy", "network",
            "timeout", "bad_response" or "http".
    """

    status_code = 502

    def __init__(self, message: str, reason: str = "http", detail: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.reason = reason

    def to_dict(self) -> dict:
        body = super().to_dict()
        body["reason"] = self.reason
        return body


class IndexUnavailableError(AppError):
    """The vector backend is unreachable. Recovered by falling back, never surfaced."""

    status_code = 503
