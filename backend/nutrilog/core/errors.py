"""Core Errors - Exceptions raised by the pure core functions."""


class InvalidInputError(ValueError):
    """Input is outside the domain a core function accepts.

    Always surfaced to the caller; the core never recovers from it.
    """
