"""Core module for the MiniGit repository layout"""

import os
import logging
from collections import namedtuple
from tempfile import NamedTemporaryFile
import yaml
from minigit import minigit_config
from minigit.fileobjectstore import FileObjectStore
from minigit.minigit_exceptions import FilesystemError, UnsupportedAlgorithm


class RepositoryStatus(
    namedtuple("RepositoryStatus", ["root", "created", "already_initialized"])
):
    """Outcome of `Repository.initialize`.

    :param str root: Path of the repository root.
    :param tuple created: Layout entries (relative to `root`) created by this call.
    :param bool already_initialized: True if the repository already existed, in which
        case nothing that was present has been modified.
    """


class HeadState(namedtuple("HeadState", ["symbolic", "target"])):
    """Contents of HEAD.

    :param bool symbolic: True if HEAD is a symbolic reference to a branch.
    :param str target: The reference (ex. "refs/heads/main") when symbolic, otherwise
        the detached object id.
    """


class Repository:
    """Repository owns the on-disk layout of a MiniGit repository: the object area,
    the references area, the symbolic HEAD pointer and the `config.yaml` file that
    records how object ids are derived and sharded.

    A Repository is only a handle over `root_path`; it keeps no other state, so several
    repositories can be used side by side in one process.

    Layout::

        <root>/
          config.yaml
          objects/
          refs/
            heads/
              main
          HEAD

    :param root_path: Path of the repository root (ex. ".minigit").
    :type root_path: str or os.PathLike
    """

    # Property (repository configuration) requirements
    property_required_keys = [
        "store_depth",
        "store_width",
        "store_algorithm",
        "default_branch",
    ]
    # Permissions settings for creating directories
    dmode = 0o755
    symbolic_ref_prefix = "ref: "

    def __init__(self, root_path):
        self.root = os.fspath(root_path)
        self.objects = os.path.join(self.root, minigit_config.OBJECTS_DIR)
        self.refs = os.path.join(self.root, minigit_config.REFS_DIR)
        self.heads = os.path.join(self.refs, minigit_config.HEADS_DIR)
        self.head = os.path.join(self.root, minigit_config.HEAD_FILE)
        self.config_yaml = os.path.join(self.root, minigit_config.CONFIG_FILE)

    def __repr__(self):
        return f"Repository({self.root!r})"

    @staticmethod
    def default_properties():
        """Return the repository properties used when none are supplied.

        :rtype: dict
        """
        return {
            "store_depth": minigit_config.DIR_DEPTH,
            "store_width": minigit_config.DIR_WIDTH,
            "store_algorithm": minigit_config.ALGORITHM,
            "default_branch": minigit_config.DEFAULT_BRANCH,
        }

    def initialize(self, properties=None):
        """Create every missing part of the repository layout. Existing directories
        and files (objects, references, HEAD and config) are never truncated, deleted
        or rewritten, so calling `initialize` on an existing repository only reports
        that it already exists.

        :param dict properties: Repository properties (`store_depth`, `store_width`,
            `store_algorithm`, `default_branch`). If `None`, the existing `config.yaml`
            or the defaults are used.

        :raises FilesystemError: If a directory or file cannot be created. Steps
            already completed are kept.
        :raises ValueError: If `properties` conflict with an existing `config.yaml`.

        :return: RepositoryStatus
        """
        already_initialized = self.is_initialized()
        if already_initialized:
            logging.info(
                "Repository - initialize: Reinitializing existing MiniGit repository in %s",
                self.root,
            )
        else:
            logging.info(
                "Repository - initialize: Initializing MiniGit repository in %s",
                self.root,
            )

        if properties is not None:
            checked_properties = self._validate_properties(properties)
        else:
            checked_properties = None
        if os.path.isfile(self.config_yaml):
            existing_properties = self._load_config()
            if checked_properties is not None:
                self._verify_properties(checked_properties, existing_properties)
            checked_properties = existing_properties
        elif checked_properties is None:
            checked_properties = self.default_properties()

        default_branch = checked_properties["default_branch"]
        branch_file = os.path.join(self.heads, default_branch)

        created = []
        layout_directories = [self.root, self.objects, self.refs, self.heads]
        # Branch names such as "feature/x" live in subdirectories of refs/heads
        layout_directories.append(os.path.dirname(branch_file))
        for directory in layout_directories:
            if self._create_path(directory):
                created.append(directory)
        if self._create_file(
            self.config_yaml, self._build_config_yaml_string(**checked_properties)
        ):
            created.append(self.config_yaml)
        if self._create_file(
            self.head, f"{self.symbolic_ref_prefix}refs/heads/{default_branch}\n"
        ):
            created.append(self.head)
        if self._create_file(branch_file, ""):
            created.append(branch_file)

        for path in created:
            logging.debug("Repository - initialize: Created: %s", path)
        logging.info(
            "Repository - initialize: MiniGit repository ready at %s", self.root
        )
        return RepositoryStatus(
            self.root,
            tuple(os.path.relpath(path, self.root) for path in created),
            already_initialized,
        )

    def is_initialized(self):
        """Check whether the object area, branch references and HEAD are present.

        :rtype: bool
        """
        return (
            os.path.isdir(self.objects)
            and os.path.isdir(self.heads)
            and os.path.isfile(self.head)
        )

    def verify_layout(self):
        """Check every required layout entry and throw an exception naming the first
        one that is missing or of the wrong type.

        :raises FilesystemError: If the layout is incomplete.
        """
        checks = [
            (self.root, os.path.isdir),
            (self.objects, os.path.isdir),
            (self.refs, os.path.isdir),
            (self.heads, os.path.isdir),
            (self.head, os.path.isfile),
            (self.config_yaml, os.path.isfile),
        ]
        for path, check in checks:
            if not check(path):
                expected = "directory" if check is os.path.isdir else "file"
                exception_string = (
                    f"Repository - verify_layout: expected {path} to be a {expected}."
                    + " The repository must first be initialized."
                )
                logging.error(exception_string)
                raise FilesystemError(exception_string)
        return True

    def read_head(self):
        """Read HEAD and return whether it points to a branch or an object id.

        :raises FilesystemError: If HEAD cannot be read.

        :return: HeadState
        """
        try:
            with open(self.head, "r", encoding="utf-8") as head_file:
                head_content = head_file.read().strip()
        except OSError as err:
            exception_string = (
                f"Repository - read_head: Unable to read HEAD at: {self.head}."
                + f" Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err

        if head_content.startswith(self.symbolic_ref_prefix):
            return HeadState(True, head_content[len(self.symbolic_ref_prefix) :])
        return HeadState(False, head_content)

    def load_properties(self):
        """Get the object store properties of this repository from `config.yaml`.

        :raises FilesystemError: If `config.yaml` is missing or unreadable.

        :return: Store properties with the following keys (and values):
            - ``store_path`` (str): Path to the repository root.
            - ``store_depth`` (int): Depth when sharding an object id.
            - ``store_width`` (int): Width of directories when sharding an object id.
            - ``store_algorithm`` (str): Algorithm used for deriving object ids.
        :rtype: dict
        """
        config = self._load_config()
        return {
            "store_path": self.root,
            "store_depth": config["store_depth"],
            "store_width": config["store_width"],
            "store_algorithm": config["store_algorithm"],
        }

    def open_store(self):
        """Return the `FileObjectStore` of this repository.

        :rtype: FileObjectStore
        """
        return FileObjectStore(self.load_properties())

    # Configuration and Related Methods

    def _load_config(self):
        """Read `config.yaml` and return the repository properties.

        :rtype: dict
        """
        if not os.path.isfile(self.config_yaml):
            exception_string = (
                f"Repository - _load_config: config.yaml not found at: {self.config_yaml}."
                + " The repository must first be initialized."
            )
            logging.critical(exception_string)
            raise FilesystemError(exception_string)
        try:
            with open(self.config_yaml, "r", encoding="utf-8") as config_file:
                yaml_data = yaml.safe_load(config_file)
        except OSError as err:
            exception_string = (
                f"Repository - _load_config: Unable to read: {self.config_yaml}."
                + f" Unexpected {err=}"
            )
            logging.critical(exception_string)
            raise FilesystemError(exception_string, errors=err) from err
        except yaml.YAMLError as ye:
            exception_string = (
                f"Repository - _load_config: {self.config_yaml} is not valid YAML. {ye}"
            )
            logging.critical(exception_string)
            raise ValueError(exception_string) from ye

        if not isinstance(yaml_data, dict):
            exception_string = (
                f"Repository - _load_config: {self.config_yaml} does not contain a mapping."
            )
            logging.critical(exception_string)
            raise ValueError(exception_string)
        properties = self._validate_properties(yaml_data)
        logging.debug(
            "Repository - _load_config: Successfully retrieved 'config.yaml' properties."
        )
        return {key: properties[key] for key in self.property_required_keys}

    @staticmethod
    def _build_config_yaml_string(
        store_depth, store_width, store_algorithm, default_branch
    ):
        """Build a YAML string representing the configuration of a repository.

        :param int store_depth: Depth when sharding an object id.
        :param int store_width: Width of directories when sharding an object id.
        :param str store_algorithm: Algorithm used for deriving object ids.
        :param str default_branch: Branch HEAD points to after initialization.

        :return: A YAML string representing the configuration of a repository.
        :rtype: str
        """
        config_yaml = f"""
        # MiniGit repository configuration

        ############### Directory Structure ###############
        # Amount of directories when sharding an object id (0 stores objects flat)
        store_depth: {store_depth}  # WARNING: DO NOT CHANGE ON AN EXISTING REPOSITORY
        # Width of directories created when sharding an object id
        store_width: {store_width}  # WARNING: DO NOT CHANGE ON AN EXISTING REPOSITORY

        ############### Hash Algorithm ###############
        # Algorithm used to derive an object's id from its content
        store_algorithm: "{store_algorithm}"  # WARNING: DO NOT CHANGE ON AN EXISTING REPOSITORY

        ############### References ###############
        default_branch: "{default_branch}"
        """
        return config_yaml

    def _validate_properties(self, properties):
        """Validate a properties dictionary by checking if it contains all the
        required keys with usable values.

        :param dict properties: Dictionary containing repository properties.

        :raises KeyError: If key is missing from the required keys.
        :raises ValueError: If a value is missing or invalid.
        :raises UnsupportedAlgorithm: If the store algorithm is not accepted.

        :return: Validated properties, with depth and width cast to int.
        :rtype: dict
        """
        if not isinstance(properties, dict):
            exception_string = (
                "Repository - _validate_properties: Invalid argument -"
                + " expected a dictionary."
            )
            logging.debug(exception_string)
            raise ValueError(exception_string)

        for key in self.property_required_keys:
            if key not in properties:
                exception_string = (
                    f"Repository - _validate_properties: Missing required key: {key}."
                )
                logging.debug(exception_string)
                raise KeyError(exception_string)
            if properties.get(key) is None:
                exception_string = (
                    f"Repository - _validate_properties: Value for key: {key} is none."
                )
                logging.debug(exception_string)
                raise ValueError(exception_string)

        checked_properties = {
            key: properties[key] for key in self.property_required_keys
        }
        for key in ["store_depth", "store_width"]:
            checked_properties[key] = int(properties[key])
        if checked_properties["store_depth"] < 0 or checked_properties["store_width"] < 1:
            exception_string = (
                "Repository - _validate_properties: store_depth must be >= 0 and"
                + " store_width must be > 0."
            )
            logging.debug(exception_string)
            raise ValueError(exception_string)

        store_algorithm = checked_properties["store_algorithm"]
        if store_algorithm not in minigit_config.ALGORITHM_TRANSLATION:
            exception_string = (
                f"Repository - _validate_properties: algorithm supplied ({store_algorithm})"
                + " cannot be used to derive object ids. Must be one of: "
                + f"{', '.join(minigit_config.ALGORITHM_TRANSLATION)}"
            )
            logging.error(exception_string)
            raise UnsupportedAlgorithm(exception_string)

        self._check_branch_name(checked_properties["default_branch"])
        return checked_properties

    def _verify_properties(self, properties, existing_properties):
        """Throw an exception if supplied properties differ from the existing
        `config.yaml`. The existing configuration is never rewritten.

        :param dict properties: Validated properties supplied by the caller.
        :param dict existing_properties: Properties found in `config.yaml`.
        """
        for key in self.property_required_keys:
            if properties[key] != existing_properties[key]:
                exception_string = (
                    f"Repository - Given properties ({key}: {properties[key]}) does not"
                    + f" match. Repository configuration ({key}: {existing_properties[key]})"
                    + f" found at: {self.config_yaml}"
                )
                logging.critical(exception_string)
                raise ValueError(exception_string)

    @staticmethod
    def _check_branch_name(branch_name):
        """Check whether a branch name can be used as a file under `refs/heads`.

        :param str branch_name: Value to check.
        """
        if (
            not isinstance(branch_name, str)
            or branch_name.strip() == ""
            or any(ch.isspace() for ch in branch_name)
            or branch_name.startswith("/")
            or ".." in branch_name
            or any(ch in minigit_config.BRANCH_INVALID_CHARS for ch in branch_name)
        ):
            exception_string = (
                f"Repository - _check_branch_name: invalid branch name: {branch_name}."
            )
            logging.error(exception_string)
            raise ValueError(exception_string)

    # Filesystem Methods

    def _create_path(self, path):
        """Physically create the folder path (and all intermediate ones) on disk.

        :param str path: The path to create.

        :raises FilesystemError: If the path exists but is not a directory, or cannot
            be created.

        :return: True if the directory was created, False if it already existed.
        :rtype: bool
        """
        try:
            os.makedirs(path, self.dmode)
            return True
        except FileExistsError as fee:
            if os.path.isdir(path):
                return False
            exception_string = (
                f"Repository - _create_path: expected {path} to be a directory"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=fee) from fee
        except OSError as err:
            exception_string = (
                f"Repository - _create_path: Unable to create: {path}. Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err

    @staticmethod
    def _create_file(path, content):
        """Create a file with `content` only if nothing exists at `path`. The content
        is written to a temporary file beside `path` and then linked into place, so
        `path` either holds the full content or does not exist.

        :param str path: The file to create.
        :param str content: Text to write.

        :raises FilesystemError: If the file cannot be created, or a directory is in
            its place.

        :return: True if the file was created, False if it already existed.
        :rtype: bool
        """
        if os.path.isfile(path):
            return False
        tmp_name = None
        try:
            with NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=os.path.dirname(path),
                prefix=".tmp",
                delete=False,
            ) as tmp_file:
                tmp_name = tmp_file.name
                tmp_file.write(content)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.link(tmp_name, path)
            return True
        except FileExistsError as fee:
            if os.path.isfile(path):
                return False
            exception_string = f"Repository - _create_file: expected {path} to be a file"
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=fee) from fee
        except OSError as err:
            exception_string = (
                f"Repository - _create_file: Unable to create: {path}. Unexpected {err=}"
            )
            logging.error(exception_string)
            raise FilesystemError(exception_string, errors=err) from err
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                try:
                    os.remove(tmp_name)
                except OSError as err:
                    logging.error(
                        "Repository - _create_file: Unable to delete tmp file: %s."
                        + " Unexpected %s",
                        tmp_name,
                        err,
                    )


def initialize(root_path, properties=None):
    """Initialize the repository layout at `root_path`.

    :param root_path: Path of the repository root.
    :param dict properties: Optional repository properties.

    :return: RepositoryStatus
    """
    return Repository(root_path).initialize(properties)
