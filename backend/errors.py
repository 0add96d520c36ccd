"""
Exception hierarchy for the attendance core.

Outcomes such as "no face detected" or "face not recognized" are not errors;
they come back as result values from the services.
"""


class FaceAttendanceError(Exception):
    """Base class for all errors raised by the attendance core."""


class ValidationError(FaceAttendanceError):
    """A required input is missing or blank."""


class InvalidImage(ValidationError):
    """The submitted image could not be decoded."""


class DimensionMismatch(FaceAttendanceError):
    """Probe and stored signatures have different lengths."""

    def __init__(self, expected: int, actual: int, name: str = ""):
        self.expected = expected
        self.actual = actual
        self.name = name
        super().__init__(
            f"Signature length mismatch for {name!r}: probe has {expected} values, record has {actual}"
        )


class StorageError(FaceAttendanceError):
    """Base class for persistence failures."""


class StorageCorrupt(StorageError):
    """A persisted document exists but cannot be read or parsed."""


class StorageWriteError(StorageError):
    """A persisted document could not be written."""


class ExtractorError(FaceAttendanceError):
    """The face model failed for a reason other than 'no face found'."""
