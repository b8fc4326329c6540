"""Cell-Power Exceptions.

This module defines custom exceptions for the Cell-Power framework.
"""

from typing import Optional


class CriticalError(Exception):
    """Raised when a power query reaches data it cannot interpret.

    A critical error means a table with an unsupported order or axis variable
    reached the query path. It is never caught inside the package: the
    enclosing analysis run must stop instead of reporting a wrong power value.

    Attributes:
        reason: Short description of the violated condition.
    """

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class LibraryError(Exception):
    """Raised when Liberty content cannot be turned into library objects.

    Attributes:
        source: Optional name of the library or group where the problem was found.
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class ResourceReleasedError(Exception):
    """Raised when a power model or expression is released a second time."""


class StagingConsumedError(Exception):
    """Raised when internal power attributes are modified after transfer()."""
