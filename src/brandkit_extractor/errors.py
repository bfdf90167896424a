"""
Error types raised by the extraction pipeline.

Each error carries the HTTP status and short label the API layer renders as
``{"error": ..., "message": ...}``.
"""

from __future__ import annotations


class BrandKitError(Exception):
    """Base class for pipeline failures surfaced to API callers."""

    status_code = 500
    error = "Internal server error"

    def __init__(self, message: str = "", *, error: str | None = None) -> None:
        super().__init__(message or self.error)
        self.message = message or self.error
        if error is not None:
            self.error = error

    def to_payload(self) -> dict[str, str]:
        return {"error": self.error, "message": self.message}


class MissingInputError(BrandKitError):
    status_code = 400
    error = "URL is required"


class ConfigurationError(BrandKitError):
    status_code = 500
    error = "API key not configured"


class CaptureError(BrandKitError):
    """Neither the screenshot service nor a direct page fetch produced anything."""

    status_code = 500
    error = "Failed to capture website"


class ScreenshotError(BrandKitError):
    """The screenshot service refused or failed the request."""

    status_code = 500
    error = "Failed to capture screenshot"


class AnalysisError(BrandKitError):
    """The AI call failed or its response could not be turned into a brand kit."""

    status_code = 500
    error = "Extraction failed"
