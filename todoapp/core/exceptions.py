"""Error taxonomy for the todo service."""


class TodoAppError(Exception):
    """Base class for every error raised on purpose by the service."""


class Unauthorized(TodoAppError):
    """No authenticated user could be resolved for the call."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InvalidTaskOperation(TodoAppError, ValueError):
    """The requested mutation can never be valid for the caller."""


class InvalidModeTransition(TodoAppError):
    """An edit session was driven through a transition it does not allow."""


class StorageCleanupFailure(TodoAppError):
    """Removing attachment blobs from storage failed.

    Cleanup is best effort; callers log this and carry on with the
    database mutation.
    """

    def __init__(self, paths, cause: Exception = None):
        self.paths = list(paths)
        self.cause = cause
        super().__init__(f"Failed to remove {len(self.paths)} blob(s): {cause}")
