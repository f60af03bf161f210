"""Root exception for the callflow engine."""


class CallflowError(Exception):
    """Base exception for all engine errors."""
    pass


class MissingParameterError(CallflowError):
    """A required parameter or state attribute is missing."""

    def __init__(self, name: str):
        super().__init__(f"Required field is missing: {name}")
        self.name = name
