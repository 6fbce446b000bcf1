"""
Error types raised by the pipeline. Each carries the HTTP status the API
answers with when it escapes a request handler.
"""


class AdGenError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InputError(AdGenError):
    """Missing or invalid URL, product data or request option."""
    status_code = 400


class ExtractionError(AdGenError):
    """The product page did not yield usable product data."""
    status_code = 400


class ProviderError(AdGenError):
    """Script generation or voice synthesis failed upstream."""
    status_code = 502


class RenderError(AdGenError):
    """The composition process failed, timed out or produced no file."""
    status_code = 500


class NotFoundError(AdGenError):
    status_code = 404
