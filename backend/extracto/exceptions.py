"""Exception taxonomy for extraction errors.

Distinguishes between document-fatal errors (surface to the caller) and
page-level errors (recorded on the page, processing continues).
"""

import httpx


class ExtractionError(Exception):
    """Base class for extraction errors. The message is shown to the caller."""

    pass


class UnsupportedInputError(ExtractionError):
    """The file type or extension is not accepted, or the document is unreadable."""

    pass


class PageRenderError(ExtractionError):
    """A single page could not be rasterized."""

    pass


class RecognitionError(ExtractionError):
    """OCR failed for a page and will not be retried further."""

    pass


class TransientRecognitionError(RecognitionError):
    """OCR request failed in a way that SHOULD be retried.

    Examples: network timeout, rate limiting, backend processing hiccup.
    """

    pass


class PayloadTooLargeError(RecognitionError):
    """The page image exceeds the backend ceiling even after compression."""

    pass


class ZeroYieldError(ExtractionError):
    """Every page produced empty text."""

    pass


class AuthenticationFailedError(ExtractionError):
    """A remote backend rejected the configured credentials. Never retried."""

    pass


# Errors that cost a page its text but never the whole document
PAGE_RECOVERABLE_ERRORS = (
    PageRenderError,
    RecognitionError,
)

# Map external exceptions to our taxonomy
TRANSIENT_ERRORS = (
    httpx.TransportError,  # Connect/read failures and timeouts
    ConnectionError,
    TimeoutError,
)

# HTTP statuses worth another attempt
TRANSIENT_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# HTTP statuses meaning the credentials were rejected
AUTH_STATUS_CODES = frozenset({401, 403})


class AnalysisError(ExtractionError):
    """The analysis collaborator failed to produce a response."""

    pass
