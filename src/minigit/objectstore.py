"""ObjectStore Interface"""
from abc import ABC, abstractmethod
from collections import namedtuple
import importlib.util


class ObjectStore(ABC):
    """ObjectStore is a content-addressable object store that addresses every object
    by the hex digest of its own content (its object id)."""

    @abstractmethod
    def put(self, content):
        """Store `content` and return its object id. The id is derived from the exact
        bytes of `content` alone, so storing byte-identical content twice returns the
        same id both times and only one object is kept on disk.

        :param bytes content: Raw content to store.

        :return: Lowercase hex object id.
        :rtype: str
        """
        raise NotImplementedError()

    @abstractmethod
    def get(self, object_id):
        """Return the exact bytes previously stored under `object_id`. No newline or
        line-ending transformation is ever applied.

        :param str object_id: Object id returned by `put`.

        :raises ObjectNotFound: If no object exists for `object_id`.

        :return: Stored content.
        :rtype: bytes
        """
        raise NotImplementedError()

    @abstractmethod
    def exists(self, object_id):
        """Check whether an object is present for `object_id`. Never raises for an
        absent or malformed id.

        :param str object_id: Object id to check.

        :return: True if the object exists.
        :rtype: bool
        """
        raise NotImplementedError()

    @abstractmethod
    def store_object(self, data):
        """Atomic storage of an object to disk from bytes, a file path or a binary
        stream. The content is written to a temporary file while its hex digest is
        calculated, then moved to its permanent address. If an object with the same id
        already exists, the temporary file is discarded and the existing object is
        reported as a duplicate.

        :param mixed data: Bytes, path to a file, or a binary stream.

        :return: ObjectMetadata - object id, relative path, absolute path, size in
            bytes and duplicate status.
        """
        raise NotImplementedError()

    @abstractmethod
    def retrieve_object(self, object_id):
        """Return an open binary stream of the object's content. Caller is responsible
        for closing the stream.

        :param str object_id: Object id to retrieve.

        :raises ObjectNotFound: If no object exists for `object_id`.

        :return: Object stream.
        :rtype: io.BufferedReader
        """
        raise NotImplementedError()

    @abstractmethod
    def verify_object(self, object_id):
        """Recalculate the hex digest of a stored object and compare it with its id.

        :param str object_id: Object id to verify.

        :return: True if the content still matches its id.
        :rtype: bool
        """
        raise NotImplementedError()


class ObjectStoreFactory:
    """A factory class for creating `ObjectStore`-like objects (classes
    that implement the 'ObjectStore' abstract methods)

    This factory class provides a method to retrieve an `ObjectStore` object
    based on a given module (ex. "minigit.fileobjectstore") and class name
    (ex. "FileObjectStore").
    """

    @staticmethod
    def get_objectstore(module_name, class_name, properties=None):
        """Get an `ObjectStore`-like object based on the specified `module_name` and
        `class_name`.

        :param str module_name: Name of the package (e.g., "minigit.fileobjectstore").
        :param str class_name: Name of the class in the given module (e.g., "FileObjectStore").
        :param dict properties: Desired store properties. Example Properties Dictionary:
            {
                "store_path": ".minigit",
                "store_depth": 0,
                "store_width": 2,
                "store_algorithm": "SHA-256",
            }

        :return: ObjectStore - A store object based on the given `module_name` and
            `class_name`.

        :raises ModuleNotFoundError: If the module is not found.
        :raises AttributeError: If the class does not exist within the module.
        """
        # Validate module
        if importlib.util.find_spec(module_name) is None:
            raise ModuleNotFoundError(f"No module found for '{module_name}'")

        # Get ObjectStore
        imported_module = importlib.import_module(module_name)

        # If class is not part of module, raise error
        if hasattr(imported_module, class_name):
            objectstore_class = getattr(imported_module, class_name)
            return objectstore_class(properties=properties)
        raise AttributeError(
            f"Class name '{class_name}' is not an attribute of module '{module_name}'"
        )


class ObjectMetadata(
    namedtuple(
        "ObjectMetadata", ["object_id", "relpath", "abspath", "obj_size", "is_duplicate"]
    )
):
    """Represents the result of storing an object.

    :param str object_id: Hex digest of the object's content.
    :param str relpath: Path of the object relative to the object area.
    :param str abspath: Absolute path of the object on disk.
    :param int obj_size: The size of the object in bytes.
    :param bool is_duplicate: Whether the object was already present before the
        store call (optional).
    """

    # Default value to prevent dangerous default value
    def __new__(cls, object_id, relpath, abspath, obj_size, is_duplicate=False):
        return super(ObjectMetadata, cls).__new__(
            cls, object_id, relpath, abspath, obj_size, is_duplicate
        )
