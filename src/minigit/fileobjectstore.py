"""Core module for FileObjectStore"""

import io
import hashlib
import os
import stat
import logging
from pathlib import Path
from contextlib import closing
from tempfile import NamedTemporaryFile
from minigit import minigit_config
from minigit.objectstore import ObjectStore, ObjectMetadata
from minigit.minigit_exceptions import (
    FilesystemError,
    ObjectNotFound,
    UnsupportedAlgorithm,
)


class FileObjectStore(ObjectStore):
    """FileObjectStore is the object area of a MiniGit repository. It stores blobs on
    disk under the lowercase hex digest of their content, so identical content is
    stored once and always receives the same object id.

    FileObjectStore initializes using a given properties dictionary containing the
    required keys (see Args). The repository layout (`objects/` under `store_path`)
    must already exist; see `minigit.repository.Repository.initialize`. The store holds
    no state beyond its root path, so any number of stores may coexist in a process.

    :param dict properties: A Python dictionary with the following keys (and values):
        - store_path (str): Path to the repository root.
        - store_depth (int): Depth when sharding an object id (0 for a flat layout).
        - store_width (int): Width of directories when sharding an object id.
        - store_algorithm (str): Algorithm used for deriving object ids (ex. "SHA-256").
    """

    # Property (store configuration) requirements
    property_required_keys = [
        "store_path",
        "store_depth",
        "store_width",
        "store_algorithm",
    ]
    # Permissions settings for writing files and creating directories
    fmode = 0o664
    dmode = 0o755
    hex_chars = frozenset("0123456789abcdef")

    def __init__(self, properties=None):
        if properties:
            checked_properties = self._validate_properties(properties)
            (
                prop_store_path,
                prop_store_depth,
                prop_store_width,
                prop_store_algorithm,
            ) = [
                checked_properties[property_name]
                for property_name in self.property_required_keys
            ]
            self.root = str(prop_store_path)
            self.depth = int(prop_store_depth)
            self.width = int(prop_store_width)
            self.algorithm = self._translate_algorithm(prop_store_algorithm)
            self.id_length = hashlib.new(self.algorithm).digest_size * 2
            self.objects = os.path.join(self.root, minigit_config.OBJECTS_DIR)
            self.tmp = os.path.join(self.objects, "tmp")
            if not os.path.isdir(self.objects):
                exception_string = (
                    f"FileObjectStore - Object area not found at: {self.objects}."
                    + " The repository must first be initialized."
                )
                logging.error(exception_string)
                raise FilesystemError(exception_string)
            logging.debug(
                "FileObjectStore - Initialization success. Object area: %s",
                self.objects,
            )
        else:
            exception_string = (
                "FileObjectStore - Store properties must be supplied."
                + f" Properties: {properties}"
            )
            logging.debug(exception_string)
            raise ValueError(exception_string)

    @staticmethod
    def _translate_algorithm(store_algorithm):
        """Translate an accepted algorithm value (ex. "SHA-256") to its hashlib name.

        :param str store_algorithm: Algorithm value from the store properties.

        :raises UnsupportedAlgorithm: If the algorithm is not accepted.

        :return: hashlib algorithm name.
        :rtype: str
        """
        translation = minigit_config.ALGORITHM_TRANSLATION
        if store_algorithm not in translation:
            exception_string = (
                "FileObjectStore - _translate_algorithm: algorithm supplied"
                + f" ({store_algorithm}) cannot be used to derive object ids. Must be one"
                + f" of: {', '.join(translation)}"
            )
            logging.error(exception_string)
            raise UnsupportedAlgorithm(exception_string)
        return translation[store_algorithm]

    def _validate_properties(self, properties):
        """Validate a properties dictionary by checking if it contains all the
        required keys and non-None values.

        :param dict properties: Dictionary containing store properties.

        :raises KeyError: If key is missing from the required keys.
        :raises ValueError: If value is missing for a required key.

        :return: The given properties object (that has been validated).
        :rtype: dict
        """
        if not isinstance(properties, dict):
            exception_string = (
                "FileObjectStore - _validate_properties: Invalid argument -"
                + " expected a dictionary."
            )
            logging.debug(exception_string)
            raise ValueError(exception_string)

        for key in self.property_required_keys:
            if key not in properties:
                exception_string = (
                    "FileObjectStore - _validate_properties: Missing required"
                    + f" key: {key}."
                )
                logging.debug(exception_string)
                raise KeyError(exception_string)
            if properties.get(key) is None:
                exception_string = (
                    "FileObjectStore - _validate_properties: Value for key:"
                    + f" {key} is none."
                )
                logging.debug(exception_string)
                raise ValueError(exception_string)
        return properties

    # Public API / ObjectStore Interface Methods

    def put(self, content):
        if not isinstance(content, (bytes, bytearray, memoryview)):
            exception_string = (
                "FileObjectStore - put: content must be bytes. Encode text before"
                + f" storing it. Content type supplied: {type(content)}"
            )
            logging.error(exception_string)
            raise TypeError(exception_string)
        object_metadata = self.store_object(bytes(content))
        return object_metadata.object_id

    def get(self, object_id):
        logging.debug(
            "FileObjectStore - get: Request to read object: %s", object_id
        )
        with self.retrieve_object(object_id) as obj_stream:
            try:
                content = obj_stream.read()
            except OSError as err:
                exception_string = (
                    f"FileObjectStore - get: Unable to read object: {object_id}."
                    + f" Unexpected {err=}"
                )
                logging.error(exception_string)
                raise FilesystemError(exception_string, errors=err) from err
        return content

    def exists(self, object_id):
        if not self._is_object_id(object_id):
            return False
        return self._resolve_path(object_id) is not None

    def store_object(self, data):
        logging.debug("FileObjectStore - store_object: Request to store object.")
        self._check_arg_data(data)
        if isinstance(data, (bytes, bytearray)):
            data = io.BytesIO(data)

        try:
            stream = Stream(data)
        except OSError as err:
            exception_string = (
                f"FileObjectStore - store_object: Unable to open data: {data}."
                + f" Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err

        with closing(stream):
            (
                object_id,
                relpath,
                abspath,
                obj_size,
                is_duplicate,
            ) = self._move_and_get_object_id(stream)

        logging.info(
            "FileObjectStore - store_object: Stored object: %s (duplicate: %s)",
            object_id,
            is_duplicate,
        )
        return ObjectMetadata(object_id, relpath, abspath, obj_size, is_duplicate)

    def retrieve_object(self, object_id):
        self._check_object_id(object_id)
        realpath = self._resolve_path(object_id)
        if realpath is None:
            exception_string = (
                f"FileObjectStore - retrieve_object: No object found for id: {object_id}"
            )
            logging.error(exception_string)
            raise ObjectNotFound(exception_string, object_id=object_id)

        try:
            # pylint: disable=W1514
            obj_stream = io.open(realpath, "rb")
        except FileNotFoundError as fnfe:
            exception_string = (
                f"FileObjectStore - retrieve_object: No object found for id: {object_id}"
            )
            logging.error(exception_string)
            raise ObjectNotFound(exception_string, object_id=object_id) from fnfe
        except OSError as err:
            exception_string = (
                f"FileObjectStore - retrieve_object: Unable to open object: {object_id}."
                + f" Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err
        logging.debug(
            "FileObjectStore - retrieve_object: Retrieved object: %s", object_id
        )
        return obj_stream

    def verify_object(self, object_id):
        with self.retrieve_object(object_id) as obj_stream:
            with closing(Stream(obj_stream)) as stream:
                hex_digest = self._computehash(stream)
        if hex_digest != object_id:
            logging.warning(
                "FileObjectStore - verify_object: Object %s has content digest: %s",
                object_id,
                hex_digest,
            )
            return False
        return True

    def compute_object_id(self, content):
        """Derive the object id of `content` without writing anything to disk.

        :param bytes content: Raw content.

        :return: Lowercase hex digest of `content`.
        :rtype: str
        """
        return self._computehash([bytes(content)])

    def list_objects(self):
        """Yield the id of every object in the object area. In-flight temporary
        files are never reported.

        :return: Generator of object ids.
        """
        for root, dirs, files in os.walk(self.objects):
            if root == self.objects and "tmp" in dirs:
                dirs.remove("tmp")
            dirs.sort()
            rel_dir = os.path.relpath(root, self.objects)
            prefix = "" if rel_dir == os.curdir else rel_dir.replace(os.sep, "")
            for file in sorted(files):
                object_id = prefix + file
                if self._is_object_id(object_id):
                    yield object_id

    def count(self):
        """Return the number of objects in the object area.

        :rtype: int
        """
        return sum(1 for _ in self.list_objects())

    # FileObjectStore Core Methods

    def _move_and_get_object_id(self, stream):
        """Copy the contents of `stream` into a temporary file and move it to the
        permanent address derived from its hex digest. If an object already lives at
        that address, the temporary file is deleted and the object is reported as a
        duplicate. A move that fails because another writer committed the same object
        first is also treated as a duplicate.

        :param Stream stream: Object stream.

        :raises FilesystemError: If the object cannot be committed.

        :return: tuple - object id, relative path, absolute path, object size and
            duplicate status.
        """
        object_id, tmp_file_name, tmp_file_size = self._write_to_tmp_file_and_get_hex_digest(
            stream
        )
        abs_file_path = self._build_path(object_id)
        relpath = "/".join(self._shard(object_id))

        is_duplicate = False
        moved = False
        try:
            if os.path.isfile(abs_file_path):
                logging.debug(
                    "FileObjectStore - _move_and_get_object_id: Object already exists: %s",
                    object_id,
                )
                is_duplicate = True
            else:
                self._create_path(os.path.dirname(abs_file_path))
                try:
                    logging.debug(
                        "FileObjectStore - _move_and_get_object_id: Moving temp file to"
                        + " permanent location: %s",
                        abs_file_path,
                    )
                    os.replace(tmp_file_name, abs_file_path)
                    moved = True
                except OSError as err:
                    if self._is_committed(abs_file_path, object_id):
                        logging.warning(
                            "FileObjectStore - _move_and_get_object_id: Object %s was"
                            + " committed by another writer. %s",
                            object_id,
                            err,
                        )
                        is_duplicate = True
                    else:
                        exception_string = (
                            "FileObjectStore - _move_and_get_object_id: Unable to move temp"
                            + f" file to: {abs_file_path}. Unexpected {err=}"
                        )
                        logging.error(exception_string)
                        raise FilesystemError(exception_string, errors=err) from err
        finally:
            if not moved:
                self._delete_tmp_file(tmp_file_name)

        return object_id, relpath, abs_file_path, tmp_file_size, is_duplicate

    def _write_to_tmp_file_and_get_hex_digest(self, stream):
        """Create a named temporary file in the object area from a `Stream` object and
        return the hex digest of its content, its filename and its size. The temporary
        file is removed if anything goes wrong before it is complete.

        :param Stream stream: Object stream.

        :raises FilesystemError: If the temporary file cannot be written.

        :return: tuple - hex_digest, tmp.name, tmp_file_size
        """
        try:
            tmp = self._mktmpfile(self.tmp)
        except OSError as err:
            exception_string = (
                "FileObjectStore - _write_to_tmp_file_and_get_hex_digest: Unable to"
                + f" create tmp file in: {self.tmp}. Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err

        logging.debug(
            "FileObjectStore - _write_to_tmp_file_and_get_hex_digest: tmp file created:"
            + " %s, calculating hex digest.",
            tmp.name,
        )

        tmp_file_completion_flag = False
        try:
            hashobj = hashlib.new(self.algorithm)
            # tmp is a file-like object that is already opened for writing by default
            with tmp as tmp_file:
                for data in stream:
                    tmp_file.write(data)
                    hashobj.update(data)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())

            hex_digest = hashobj.hexdigest()
            tmp_file_size = os.path.getsize(tmp.name)
            # Ready for the atomic move
            tmp_file_completion_flag = True
            return hex_digest, tmp.name, tmp_file_size
        except OSError as err:
            exception_string = (
                "FileObjectStore - _write_to_tmp_file_and_get_hex_digest:"
                + f" Unable to write tmp file: {tmp.name}. Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err
        finally:
            if not tmp_file_completion_flag:
                self._delete_tmp_file(tmp.name)

    def _mktmpfile(self, path):
        """Create a temporary file at the given path ready to be written.

        :param str path: Path to the file location.

        :return: file object - object with a file-like interface.
        """
        # Physically create directory if it doesn't exist
        if not os.path.exists(path):
            self._create_path(path)

        tmp = NamedTemporaryFile(dir=path, delete=False)
        # Ensure tmp file is created with desired permissions
        if self.fmode is not None:
            os.chmod(tmp.name, self.fmode)
        return tmp

    @staticmethod
    def _delete_tmp_file(tmp_file_name):
        """Remove a temporary file if it is still present. A failure is logged so that
        it does not mask the error being propagated."""
        try:
            if os.path.exists(tmp_file_name):
                os.remove(tmp_file_name)
        except OSError as err:
            logging.error(
                "FileObjectStore - _delete_tmp_file: Unexpected %s while attempting to"
                + " delete tmp file: %s",
                repr(err),
                tmp_file_name,
            )

    def _is_committed(self, abs_file_path, object_id):
        """Check whether the file at `abs_file_path` holds the content of `object_id`."""
        if not os.path.isfile(abs_file_path):
            return False
        try:
            with closing(Stream(abs_file_path)) as stream:
                return self._computehash(stream) == object_id
        except OSError:
            return False

    def _computehash(self, stream):
        """Compute the hex digest of an iterable of byte chunks using the store
        algorithm.

        :param mixed stream: A `Stream` or any iterable of bytes.

        :return: Hex digest.
        :rtype: str
        """
        hashobj = hashlib.new(self.algorithm)
        for data in stream:
            hashobj.update(data)
        return hashobj.hexdigest()

    def _shard(self, digest):
        """Generates a list given a digest of `self.depth` number of tokens with width
        `self.width` from the first part of the digest plus the remainder.

        Example (depth 2, width 2):
            ['39', 'cf', '126f79b598f7ce8ba8a80ea49abc51a22ab46b8c7f2a67ce02ed932146']

        :param str digest: The string to be divided into tokens.

        :return: A list containing the tokens of fixed width.
        :rtype: list
        """

        def compact(items):
            """Return only truthy elements of `items`."""
            return [item for item in items if item]

        hierarchical_list = compact(
            [digest[i * self.width : self.width * (i + 1)] for i in range(self.depth)]
            + [digest[self.depth * self.width :]]
        )
        return hierarchical_list

    def _build_path(self, object_id):
        """Build the absolute file path for a given object id.

        :param str object_id: Object id to build a file path for.

        :return: An absolute file path for the specified object id.
        :rtype: str
        """
        return os.path.join(self.objects, *self._shard(object_id))

    def _resolve_path(self, object_id):
        """Return the path of a stored object, or None if it is absent.

        :raises FilesystemError: If the object's path cannot be inspected.
        """
        abspath = self._build_path(object_id)
        try:
            file_stat = os.stat(abspath)
        except (FileNotFoundError, NotADirectoryError):
            return None
        except OSError as err:
            exception_string = (
                f"FileObjectStore - _resolve_path: Unable to inspect: {abspath}."
                + f" Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err
        if stat.S_ISREG(file_stat.st_mode):
            return abspath
        return None

    def _create_path(self, path):
        """Physically create the folder path (and all intermediate ones) on disk.

        :param str path: The path to create.

        :raises FilesystemError: If the path exists but is not a directory, or cannot
            be created.
        """
        try:
            os.makedirs(path, self.dmode)
        except FileExistsError as fee:
            if not os.path.isdir(path):
                exception_string = (
                    f"FileObjectStore - _create_path: expected {path} to be a directory"
                )
                logging.error(exception_string)
                raise FilesystemError(exception_string, errors=fee) from fee
        except OSError as err:
            exception_string = (
                f"FileObjectStore - _create_path: Unable to create: {path}."
                + f" Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err

    def _is_object_id(self, object_id):
        """Check whether `object_id` is a lowercase hex digest of the store's width."""
        return (
            isinstance(object_id, str)
            and len(object_id) == self.id_length
            and set(object_id) <= self.hex_chars
        )

    def _check_object_id(self, object_id):
        """Check whether an object id is well-formed; throws an exception if not.

        :param str object_id: Value to check.
        """
        if not self._is_object_id(object_id):
            exception_string = (
                "FileObjectStore - _check_object_id: object id must be a lowercase hex"
                + f" digest of {self.id_length} characters, object id: {object_id}."
            )
            logging.error(exception_string)
            raise ValueError(exception_string)

    @staticmethod
    def _check_arg_data(data):
        """Checks a data argument to ensure that it is bytes, a path, or a stream.

        :param data: Object to validate (bytes, path, or stream).
        :type data: bytes, str, os.PathLike, io.BufferedIOBase

        :return: True if valid.
        :rtype: bool
        """
        if not isinstance(data, (bytes, bytearray, str, Path, io.BufferedIOBase)):
            exception_string = (
                "FileObjectStore - _check_arg_data: Data must be bytes, a path or a"
                + f" buffered stream type. Data type supplied: {type(data)}"
            )
            logging.error(exception_string)
            raise TypeError(exception_string)
        if isinstance(data, str) and data.strip() == "":
            exception_string = (
                "FileObjectStore - _check_arg_data: Data path string cannot be empty."
            )
            logging.error(exception_string)
            raise TypeError(exception_string)
        return True


class Stream(object):
    """Common interface for file-like objects.

    The input `obj` can be a file-like object or a path to a file. If `obj` is
    a path to a file, then it will be opened until :meth:`close` is called.
    If `obj` is a file-like object, then its original position will be
    restored when :meth:`close` is called instead of closing the object
    automatically.

    Content is yielded in binary chunks exactly as read; no line-oriented
    processing is ever applied.
    """

    def __init__(self, obj):
        if hasattr(obj, "read"):
            pos = obj.tell()
        elif os.path.isfile(obj):
            obj = io.open(obj, "rb")
            pos = None
        else:
            raise ValueError("Object must be a valid file path or a readable object")

        try:
            file_stat = os.stat(obj.name)
            buffer_size = file_stat.st_blksize
        except (AttributeError, TypeError, OSError):
            buffer_size = 8192

        self._obj = obj
        self._pos = pos
        self._buffer_size = buffer_size

    def __iter__(self):
        """Read underlying IO object and yield results. Return object to
        original position if we didn't open it originally.
        """
        self._obj.seek(0)

        while True:
            data = self._obj.read(self._buffer_size)

            if not data:
                break

            yield data

        if self._pos is not None:
            self._obj.seek(self._pos)

    def close(self):
        """Close underlying IO object if we opened it, else return it to
        original position.
        """
        if self._pos is None:
            self._obj.close()
        else:
            self._obj.seek(self._pos)
