"""MiniGit custom exception module."""


class FilesystemError(Exception):
    """Custom exception thrown when a repository directory, reference file or object
    cannot be created, written or read (permissions, disk exhaustion, a colliding
    non-directory entry). The underlying `OSError` is kept in `errors`."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors


class ObjectNotFound(Exception):
    """Custom exception thrown when an object is requested by an id that has never
    been stored in the object area."""

    def __init__(self, message, object_id=None):
        super().__init__(message)
        self.object_id = object_id


class UnsupportedAlgorithm(Exception):
    """Custom exception thrown when a given algorithm is not accepted by MiniGit for
    deriving object ids."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors
