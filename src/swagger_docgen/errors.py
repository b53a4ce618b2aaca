"""Exceptions that abort a documentation run.

Recoverable problems never raise; they are collected as ``DocWarning``
records and reported after the run.
"""


class DocgenError(Exception):
    """Base class for fatal documentation generation errors."""


class RouterNotFoundError(DocgenError):
    """The designated router declaration is missing or cannot be parsed."""


class OutputError(DocgenError):
    """The generated document could not be written."""


class GenerationCancelled(DocgenError):
    """The run was cancelled before the document was written."""
