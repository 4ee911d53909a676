"""Error types shared by the fetch, conversion and write stages.

Every error carries a ``kind`` string that ends up in the batch report, so a
failed component is always reported with the reason it failed.
"""

import logging
from typing import List

logger = logging.getLogger(__name__)


class NlbnError(Exception):
    """Base class for conversion pipeline errors."""

    kind = "Error"


class InvalidGeometry(NlbnError):
    """Raised when a coordinate or length is not a finite number."""

    kind = "InvalidGeometry"


class MalformedPrimitive(NlbnError):
    """Raised when a shape string lacks required geometry fields."""

    kind = "MalformedPrimitive"


class DuplicatePin(NlbnError):
    """Raised when two symbol pins share a pin number."""

    kind = "DuplicatePin"


class DuplicatePad(NlbnError):
    """Raised when two numbered footprint pads share a pad number."""

    kind = "DuplicatePad"


class ModelUnavailable(NlbnError):
    """Raised when no usable 3D model could be obtained for a component."""

    kind = "ModelUnavailable"


class MissingOutput(NlbnError):
    """The part has no symbol or no footprint document on EasyEDA."""

    kind = "NotFound"


class FetchError(NlbnError):
    """Raised when component data cannot be retrieved from EasyEDA.

    ``reason`` is one of ``NOT_FOUND``, ``NETWORK_ERROR`` or ``RATE_LIMITED``
    and becomes the reported error kind.
    """

    NOT_FOUND = "NotFound"
    NETWORK_ERROR = "NetworkError"
    RATE_LIMITED = "RateLimited"

    def __init__(self, message: str, reason: str = NETWORK_ERROR):
        super().__init__(message)
        self.reason = reason

    @property
    def kind(self) -> str:
        return f"FetchError.{self.reason}"


class SSLCertError(FetchError):
    """Raised when TLS certificate verification fails.

    A subclass of FetchError so existing ``except FetchError`` handlers still
    work as a fallback; the CLI catches it first to suggest ``--insecure``.
    """

    def __init__(self, message: str):
        super().__init__(message, FetchError.NETWORK_ERROR)


class LibraryIOError(NlbnError):
    """Raised when a library file or directory cannot be written."""

    kind = "IOError"


class ShapeErrorPolicy:
    """Decides what happens to a primitive that fails to parse or map.

    In strict mode the error propagates and aborts the component. Otherwise
    the primitive is dropped, a warning is logged and recorded in
    ``warnings`` so the caller can report it.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self.warnings: List[str] = []

    def handle(self, error: NlbnError, shape: str) -> None:
        if self.strict:
            raise error
        head = shape if len(shape) <= 60 else shape[:57] + "..."
        message = f"{error.kind}: {error} ({head})"
        logger.warning("Skipping primitive: %s", message)
        self.warnings.append(message)
