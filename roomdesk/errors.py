from typing import Optional


class GatewayError(Exception):
    """A table read or write failed. `code` carries the backend's error code when known."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class UnknownTable(GatewayError):
    pass


class InvalidQuery(GatewayError):
    pass


class UniqueViolation(GatewayError):
    """Insert collided with an existing row, e.g. a second booking for the same room and date."""

    def __init__(self, message: str, code: Optional[str] = "23505"):
        super().__init__(message, code)
