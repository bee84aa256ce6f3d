"""Error taxonomy shared by the orchestration pipeline and the HTTP boundary.

Only ``InvalidRequest``, ``NotFound`` and ``InternalFault`` ever reach an HTTP
caller. ``ProviderUnavailable`` and ``ParseFailure`` are always recovered
locally with a fixed degraded value.
"""
from __future__ import annotations


class DeepDiveError(Exception):
    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class InvalidRequest(DeepDiveError):
    status_code = 400


class NotFound(DeepDiveError):
    status_code = 404


class ProviderUnavailable(DeepDiveError):
    """Missing credentials, transport failure or timeout for a capability call."""

    def __init__(self, message: str = "", provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class ParseFailure(ProviderUnavailable):
    """Provider answered but no JSON could be extracted from the text."""


class InternalFault(DeepDiveError):
    status_code = 500
