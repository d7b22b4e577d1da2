"""Exceptions raised by the converter session and its components."""


class ConverterError(Exception):
    """Base class for errors reported back to the user."""
    pass


class InvalidInputError(ConverterError):
    """Raised when a file or option is rejected before any state change."""
    pass


class InvalidStateError(ConverterError):
    """Raised when a command is not allowed in the current session state."""
    pass


class PageNotFoundError(ConverterError):
    """Raised when a page number has no converted image."""
    pass


class ConversionError(ConverterError):
    """Raised when the PDF engine cannot open or render the document."""

    def __init__(self, message: str, page_number: int | None = None):
        super().__init__(message)
        self.page_number = page_number


class ExportError(ConverterError):
    """Raised when the export archive cannot be built."""
    pass
