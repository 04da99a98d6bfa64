"""Exception classes for the pronunciation analysis service."""

from typing import Optional


class PronunciationServiceError(Exception):
    """Base exception for all service errors."""


class ConfigurationError(PronunciationServiceError):
    """Raised when configuration is invalid or missing."""


class CorpusFormatError(PronunciationServiceError):
    """Raised when the rule corpus document is missing or malformed."""


class IndexBuildError(PronunciationServiceError):
    """Raised when the rule index cannot be built at startup."""


class RetrievalError(PronunciationServiceError):
    """Raised when a query against the rule index fails."""


class ReasoningBackendError(PronunciationServiceError):
    """Raised when the reasoning backend is unreachable or returns an error."""


class TranscriptionError(PronunciationServiceError):
    """Raised when audio cannot be transcribed."""


class PronunciationAnalysisError(PronunciationServiceError):
    """Raised when an analysis cannot complete because an upstream call failed."""


class ApiError(PronunciationServiceError):
    """Error rendered as a JSON response by the HTTP layer."""

    def __init__(self, status_code: int, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details
