"""Custom exceptions for nameforge."""


class NameForgeError(Exception):
    """Base exception for all nameforge errors."""


class InputPathError(NameForgeError):
    """Raised when the input path cannot be processed at all."""


class FileProcessingError(NameForgeError):
    """Raised when a single file cannot be renamed; the batch continues."""


class GeocodingError(NameForgeError):
    """Raised by a geocoder when a reverse lookup fails."""


class ContentAnalysisError(NameForgeError):
    """Raised by a content client when image analysis fails."""
