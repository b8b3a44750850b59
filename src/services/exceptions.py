"""Shared exceptions for service layer operations."""


class InvalidUrlError(Exception):
    """
    Raised when a user-supplied URL is missing or cannot be parsed.

    This is the only metadata-pipeline failure surfaced to clients; every
    scraping failure after validation degrades to a fallback record instead.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ImportFormatError(Exception):
    """Raised when an uploaded import file cannot be parsed in its declared format."""

    def __init__(self, fmt: str, reason: str) -> None:
        self.fmt = fmt
        self.reason = reason
        super().__init__(f"Could not parse {fmt} import file: {reason}")


class UnsupportedImportFormatError(ImportFormatError):
    """Raised when an import is requested in a format that has no parser."""

    def __init__(self, fmt: str) -> None:
        super().__init__(fmt, "unsupported format")
