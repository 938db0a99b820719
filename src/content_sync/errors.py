"""Exception hierarchy for content-sync.

Backend errors carry the failing operation name and the underlying cause so a
single log line can say what broke and why.
"""


class ContentSyncError(Exception):
    """Base class for every error raised by content-sync."""


class VcsError(ContentSyncError):
    """A version-control operation failed.

    Attributes:
        op (str): The backend operation that failed (e.g. 'clone', 'push').
        cause (BaseException | None): The underlying exception, if any.
    """

    op = "git"

    def __init__(self, message: str, cause: BaseException | None = None):
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        msg = super().__str__()
        if self.cause is not None:
            return f"{self.op}: {msg}: {self.cause}"
        return f"{self.op}: {msg}"


class CloneError(VcsError):
    op = "clone"


class CheckoutError(VcsError):
    op = "checkout"


class FetchMergeError(VcsError):
    op = "fetch-merge"


class StatusError(VcsError):
    op = "status"


class CommitError(VcsError):
    op = "commit"


class PushError(VcsError):
    op = "push"


class PushRejectedError(PushError):
    """The remote refused one or more references during a push.

    Attributes:
        rejected (dict[str, str]): Mapping of ref name to the remote's message.
    """

    def __init__(self, rejected: dict[str, str]):
        self.rejected = rejected
        details = ", ".join(f"{ref} ({msg})" for ref, msg in rejected.items())
        super().__init__(f"remote rejected {details}")


class ContentError(ContentSyncError):
    """A content file could not be read or written.

    Attributes:
        path (Path): The content file involved.
    """

    def __init__(self, message: str, path):
        super().__init__(message)
        self.path = path


class ReadError(ContentError):
    pass


class WriteError(ContentError):
    pass


class TaskError(ContentSyncError):
    """Raised by content tasks when they cannot produce their data."""
