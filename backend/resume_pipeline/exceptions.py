"""
Error taxonomy for the upload and processing pipeline.

Errors raised before a File row exists (validation, auth, credits, lookups)
are returned to the caller with their HTTP status. Extraction and LLM errors
happen after the File exists and are recorded against it instead.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = 400


class InsufficientCreditsError(AppError):
    status_code = 402

    def __init__(self, required: int, available: int):
        super().__init__(
            f"Insufficient credits. Required: {required}, Available: {available}"
        )
        self.required = required
        self.available = available


class NotFoundError(AppError):
    status_code = 404


class ExtractionError(AppError):
    """Text could not be pulled out of the PDF."""


class ProcessingError(AppError):
    """The pipeline did not bring the file to completion."""


class LlmError(AppError):
    """Structured extraction failed. `retryable` drives the retry policy."""

    def __init__(self, message: str, retryable: bool = False, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.retryable = retryable
        self.cause = cause
