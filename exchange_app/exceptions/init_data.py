"""Failures raised while verifying Telegram WebApp initData.

Every failure is terminal for the token that produced it: the client has to
obtain fresh initData from Telegram, nothing can be repaired server-side.
"""

from __future__ import annotations

from typing import ClassVar


class InitDataError(Exception):
    """Base class; ``code`` is the short machine-readable failure kind."""

    code: ClassVar[str] = "AUTH_FAILED"


class InvalidInput(InitDataError):
    """The token or the shared secret is empty."""

    code = "INVALID_INPUT"


class MalformedToken(InitDataError):
    """The token decodes to no pairs or carries no ``hash`` field."""

    code = "MALFORMED_TOKEN"


class SignatureMismatch(InitDataError):
    """The recomputed signature differs from the ``hash`` field."""

    code = "SIGNATURE_MISMATCH"


class MissingTimestamp(InitDataError):
    """``auth_date`` is absent or not an integer."""

    code = "MISSING_TIMESTAMP"


class Expired(InitDataError):
    """``auth_date`` is older than the accepted window."""

    code = "EXPIRED"


class MissingUser(InitDataError):
    """The ``user`` field is absent."""

    code = "MISSING_USER"


class MalformedUser(InitDataError):
    """The ``user`` field is not a JSON object with an integer ``id``."""

    code = "MALFORMED_USER"


__all__ = [
    "Expired",
    "InitDataError",
    "InvalidInput",
    "MalformedToken",
    "MalformedUser",
    "MissingTimestamp",
    "MissingUser",
    "SignatureMismatch",
]
