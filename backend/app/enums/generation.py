"""
Generation-related enums.

Defines the error classification used at the text-generation boundary.
"""

from enum import Enum


class GenerationErrorKind(str, Enum):
    """
    Classified failure of a text-generation call.

    The kind decides whether a caller's retry loop should try again.
    """

    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rateLimit"
    BAD_REQUEST = "badRequest"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"

    @property
    def retryable(self) -> bool:
        return self not in TERMINAL_ERROR_KINDS


# Retrying these only burns the retry budget
TERMINAL_ERROR_KINDS = frozenset(
    {GenerationErrorKind.AUTH, GenerationErrorKind.BAD_REQUEST}
)

