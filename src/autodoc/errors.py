"""Exception hierarchy for autodoc."""

from typing import Optional


class AutodocError(Exception):
    """Base class for all autodoc errors."""


class ConfigurationError(AutodocError):
    """Invalid or incomplete configuration. Fatal."""


class RootDirectoryError(AutodocError):
    """Root directory is missing or unreadable. Fatal."""


class SourceReadError(AutodocError):
    """A single source file could not be read or decoded."""


class ParseError(AutodocError):
    """A source file could not be parsed."""

    def __init__(self, path: str, line: Optional[int] = None):
        self.path = path
        self.line = line
        location = f"{path}:{line}" if line else path
        super().__init__(f"Syntax error in {location}")


class PatchConflictError(AutodocError):
    """Patch edits overlap or fall outside the file."""


class BackendError(AutodocError):
    """The generation backend rejected a request."""


class TransientBackendError(BackendError):
    """Rate limit, overload or server-side failure worth retrying."""


class GitHubError(AutodocError):
    """A GitHub API call failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class InvalidOutputError(AutodocError):
    """Generated text cannot be inserted as a documentation comment."""
