from __future__ import annotations


def cap_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    return s[:max_chars] + f"...(truncated, {len(s)} chars)"


class AdCheckError(Exception):
    """
    Base for every failure the pipeline reports on purpose.

    - code: machine-readable error code surfaced to API callers
    - status_code: HTTP status used when the error reaches the API layer
    - excerpt: bounded slice of the offending text (never the full model output)
    """
    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str, *, excerpt: str | None = None, excerpt_chars: int = 500):
        super().__init__(message)
        self.message = message
        self.excerpt = cap_text(excerpt, max_chars=excerpt_chars) if excerpt else None

    @property
    def details(self) -> str:
        if self.excerpt:
            return f"{self.message} | excerpt: {self.excerpt}"
        return self.message


class ConfigurationError(AdCheckError):
    code = "CONFIGURATION_ERROR"
    status_code = 500


class ValidationError(AdCheckError):
    code = "VALIDATION_ERROR"
    status_code = 400


class SourceError(AdCheckError):
    code = "POLICY_SOURCE_ERROR"
    status_code = 502


class NotFoundError(SourceError):
    code = "POLICY_SOURCE_NOT_FOUND"


class EmptyContentError(SourceError):
    code = "POLICY_SOURCE_EMPTY"


class FetchError(SourceError):
    code = "POLICY_FETCH_FAILED"


class ServiceError(AdCheckError):
    code = "GENERATION_SERVICE_ERROR"
    status_code = 502


class ParseError(AdCheckError):
    code = "PARSE_ERROR"
    status_code = 502


class ExtractionError(AdCheckError):
    code = "POLICY_EXTRACTION_FAILED"
    status_code = 502


class EvaluationError(AdCheckError):
    code = "EVALUATION_FAILED"
    status_code = 502


class ResponseShapeError(AdCheckError):
    code = "RESPONSE_SHAPE_INVALID"
    status_code = 502


class StorageError(AdCheckError):
    code = "MEDIA_UNREADABLE"
    status_code = 500
