"""Exception types raised by podresolve.

Only genuine provider or I/O failures are exceptional. A screenshot that
cannot be matched against the catalog produces a NOT_FOUND result instead.
"""


class PodresolveError(Exception):
    """Base class for all podresolve errors."""


class OcrError(PodresolveError):
    """OCR provider failure (reader unavailable, bad image, timeout)."""


class NoTextDetectedError(OcrError):
    """The OCR provider ran successfully but found no text in the image."""


class CatalogError(PodresolveError):
    """Network or HTTP failure while talking to the podcast catalog."""

    def __init__(self, message: str, status_code=None):
        super().__init__(message)
        self.status_code = status_code
