"""Unified error codes and custom exceptions.

Error code ranges:
  1xxx: User
  9xxx: System

Cache-layer errors live at the bottom of this module. They are plain
exceptions, not AppError: the cache is advisory and none of them may ever
reach a client as an error response.
"""


class AppError(Exception):
    """Base application error."""

    def __init__(
        self,
        code: int,
        message: str,
        http_status: int = 500,
    ) -> None:
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(message)


# --- 1xxx: User ---

class UserNotFoundError(AppError):
    def __init__(self, user_id: str) -> None:
        super().__init__(1001, f"User not found: {user_id}", 404)


class EmailExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1002, "Email already exists", 409)


class MobileExistsError(AppError):
    def __init__(self) -> None:
        super().__init__(1003, "Mobile number already exists", 409)


class UserConflictError(AppError):
    def __init__(self) -> None:
        super().__init__(1004, "User conflicts with an existing record", 409)


# --- 9xxx: System ---

class RateLimitError(AppError):
    def __init__(self, retry_after: int) -> None:
        super().__init__(9001, f"Too many requests. Try again in {retry_after}s.", 429)
        self.retry_after = retry_after


class InternalError(AppError):
    def __init__(self, detail: str = "Internal server error") -> None:
        super().__init__(9002, detail, 500)


class RequestValidationFailed(AppError):
    def __init__(self, detail: str) -> None:
        super().__init__(9003, detail, 422)


class RouteNotFoundError(AppError):
    def __init__(self, path: str) -> None:
        super().__init__(9004, f"Route {path} not found", 404)


# --- Cache layer (never rendered to clients) ---

class CacheError(Exception):
    """Base for every failure raised inside the cache layer."""


class StoreUnavailable(CacheError):
    """The key-value store is not connected or refused the command."""


class StoreTimeout(CacheError):
    """The key-value store did not answer within the client timeout."""


class SerializationError(CacheError):
    """A cache value could not be JSON-encoded or decoded."""


class ConfigurationError(CacheError):
    """Invalid cache configuration. Raised at registration time only."""
