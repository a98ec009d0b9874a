"""Error types for query-radar."""


class ContractViolationError(ValueError):
    """A caller passed an argument the pipeline cannot honour.

    Raised instead of coercing the value, since a silently wrong default
    would corrupt an operator-facing ranking.
    """

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class InputFileError(Exception):
    """An input file could not be read or parsed."""

    pass


def require_non_negative(value: float, field: str) -> float:
    """Return value unchanged, or raise if it is negative."""
    if value < 0:
        raise ContractViolationError(field, f"must be >= 0, got {value}")
    return value

