"""Exception classes and error handling"""

import sys
from typing import NoReturn

import httpx
import rich.console
import rich.padding

# Error return codes, mostly just distinguished for the benefit of tests.
# These start at 10 just to leave some room for future use.
ARGS_INVALID = 10
ARGS_CONFLICT = 11
REFERENCE_INVALID = 12
REFERENCE_UNRESOLVABLE = 13
NETWORK_FAILED = 14
PAGE_INVALID = 15


class FatalError(Exception):
    """An unrecoverable error"""


class InvalidReference(ValueError):
    """A reference string that does not follow the FHIR reference grammar"""


class UnresolvableContainedReference(LookupError):
    """A #fragment reference that names no contained resource"""

    def __init__(self, reference: str):
        super().__init__(f"Unable to resolve contained reference: {reference}")
        self.reference = reference


class NetworkError(FatalError):
    """
    Any failure talking to a server: a non-2xx status, a connection problem, or an unreadable body.

    The response is available (when there was one) for callers that want the status or payload.
    """

    def __init__(self, msg: str, response: httpx.Response | None):
        super().__init__(msg)
        self.response = response


def fatal(message: str, status: int, extra: str = "") -> NoReturn:
    """Convenience method to exit the program with a user-friendly error message a test-friendly status code"""
    stderr = rich.console.Console(stderr=True)
    stderr.print(message, style="bold red", highlight=False)
    if extra:
        stderr.print(rich.padding.Padding.indent(extra, 2), highlight=False)
    sys.exit(status)  # raises a SystemExit exception
