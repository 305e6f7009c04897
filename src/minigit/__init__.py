"""MiniGit is a minimal version-control repository backend: it creates the on-disk
layout of a repository and stores file contents ("blobs") in a content-addressable
object store. Some properties:

- Objects are immutable and never change
- Objects are named using the lowercase hex digest of their exact content
    (thus, identical content is stored once under one object id)
- Objects are written to a temporary file and atomically moved into place, so a
    partially written object is never visible
- Content is stored and returned byte for byte; no line-ending or newline handling
"""

from minigit.objectstore import ObjectStore, ObjectStoreFactory, ObjectMetadata
from minigit.fileobjectstore import FileObjectStore
from minigit.repository import Repository, RepositoryStatus, HeadState, initialize
from minigit.minigit_exceptions import (
    FilesystemError,
    ObjectNotFound,
    UnsupportedAlgorithm,
)

__all__ = (
    "ObjectStore",
    "ObjectStoreFactory",
    "ObjectMetadata",
    "FileObjectStore",
    "Repository",
    "RepositoryStatus",
    "HeadState",
    "initialize",
    "FilesystemError",
    "ObjectNotFound",
    "UnsupportedAlgorithm",
)
__version__ = "0.1.0"
