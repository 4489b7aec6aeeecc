class HttpError(Exception):
    def __init__(
        self,
        status: int,
        reason: str,
        context: str,
        code: str | None = None,
        message: str | None = None,
    ):
        self.status = status
        self.reason = reason
        self.context = context
        self.code = code
        self.message = message

    def __str__(self):
        details = f" ({self.code}: {self.message})" if self.code else ""
        return (
            f"Client error '{self.status} {self.reason}'{details}. "
            f"Context: {self.context}"
        )


class BucketFsError(Exception):
    """Base class for errors raised by the folder emulation layer."""


class Unauthorized(BucketFsError):
    def __str__(self):
        return "Request is not authenticated"


class NotFound(BucketFsError):
    def __init__(self, key: str):
        self.key = key

    def __str__(self):
        return f"No object stored under key {self.key!r}"


class StoreUnavailable(BucketFsError):
    def __init__(self, operation: str, cause: Exception | str):
        self.operation = operation
        self.cause = cause

    def __str__(self):
        return f"Object store unavailable during {self.operation}: {self.cause}"


class ValidationError(BucketFsError):
    pass
