"""surfgrowth error types."""


class SurfGrowthError(Exception):
    """Base error for all surfgrowth failures."""


class OutOfRangeError(SurfGrowthError, IndexError):
    """Column, row or series index outside its valid range."""


class MissingParameterError(SurfGrowthError, KeyError):
    """A required model parameter was not supplied at initialization."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"Missing required parameter: {self.name!r}"
