"""Exceptions raised by the vector index.

Both argument errors subclass ``ValueError`` so callers that only care about
"bad input" can catch that, while callers that need to tell a duplicate id
from a wrong-length vector can catch the specific class.
"""


class VectorIndexError(Exception):
    """Base class for all index errors."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class DimensionMismatchError(VectorIndexError, ValueError):
    """Raised when a vector's length differs from the index dimension."""

    def __init__(self, expected: int, actual: int, what: str = "Vector") -> None:
        message = f"{what} dimension {actual} doesn't match index dimension {expected}"
        super().__init__(message, "DIMENSION_MISMATCH")
        self.expected = expected
        self.actual = actual


class DuplicateIdError(VectorIndexError, ValueError):
    """Raised when inserting an id that is already in the index."""

    def __init__(self, node_id: str) -> None:
        message = f"ID '{node_id}' already exists in the index"
        super().__init__(message, "DUPLICATE_ID")
        self.id = node_id


class DeserializationError(VectorIndexError, ValueError):
    """Raised when serialized index bytes are malformed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, "DESERIALIZATION_ERROR")
