"""Exceptions raised by the OCR layer."""


class OCRError(Exception):
    """Base class for OCR engine failures."""


class EngineInitError(OCRError):
    """The OCR engine could not be started for the requested language."""


class SessionClosedError(OCRError):
    """A recognition was requested on a session that was already closed."""


class InvalidImageError(OCRError):
    """The image bytes could not be decoded."""


class RecognitionError(OCRError):
    """The OCR engine failed while recognizing a region."""
