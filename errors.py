from typing import Optional


class NotAuthenticated(PermissionError):
    def __init__(self, message: str = "Not authenticated") -> None:
        super().__init__(message)


class NotFound(ValueError):
    pass


class IllegalMutation(ValueError):
    pass


class ActivePeriodConflict(RuntimeError):
    def __init__(self, user_id: int, detail: Optional[str] = None) -> None:
        self.user_id = user_id
        message = f"Another active budget period exists for user {user_id}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class StoreUnavailable(RuntimeError):
    """A store read or write failed; ``operation`` names the store call."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None) -> None:
        self.operation = operation
        message = f"Store operation failed: {operation}"
        if cause is not None:
            message = f"{message} ({cause.__class__.__name__})"
        super().__init__(message)
