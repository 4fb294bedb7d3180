class InvalidInputError(ValueError):
    """Raised when a caller breaks an operation's input contract.

    Degraded data (no history, provider offline) is never reported this way;
    those paths return low-confidence or empty results instead.
    """
