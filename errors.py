from typing import Optional


class ValidationError(ValueError):
    """Malformed or missing input; ``errors`` maps field names to messages."""

    def __init__(
        self, message: str = "Invalid data", errors: Optional[dict[str, str]] = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors: dict[str, str] = dict(errors or {})


class NotFoundError(ValueError):
    pass


class PersistenceError(RuntimeError):
    pass
