"""Exception taxonomy for the IntelliFlash collector.

Only NoServersConfigured escapes a poll cycle. Every other error is caught
by the orchestrator, attributed to its server and collection step, and
reported alongside the records that were collected.
"""

from typing import Optional


class IntelliflashError(Exception):
    """Base class for all collector errors."""


class NoServersConfigured(IntelliflashError):
    """Gather was called with an empty server list."""

    def __init__(self, message: str = "no servers specified"):
        super().__init__(message)


class MissingCredentials(IntelliflashError):
    """Neither the configuration nor the server URL supplies credentials."""

    def __init__(self, message: str = "Username or password not set"):
        super().__init__(message)


class ConnectionFailure(IntelliflashError):
    """Transport-level failure (DNS, TCP, TLS, timeout)."""


class HTTPStatusFailure(IntelliflashError):
    """The array answered with a non-2xx HTTP status."""

    def __init__(self, message: str, status_code: int, vendor_message: Optional[str] = None):
        if vendor_message:
            message = f"{message}: {vendor_message}"
        super().__init__(message)
        self.status_code = status_code
        self.vendor_message = vendor_message


class MalformedResponse(IntelliflashError):
    """The response body does not match the expected JSON shape."""


class UnknownCategory(IntelliflashError):
    """An analytics category outside SYSTEM, DATA, CAPACITY (or IDENTITY) was requested."""

    def __init__(self, category):
        super().__init__(f"Unknown analytics category: {category!r}")
        self.category = category
