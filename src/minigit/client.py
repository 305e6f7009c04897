"""MiniGit Command Line App"""
import logging
import os
import sys
from argparse import ArgumentParser
from logging.handlers import MemoryHandler
from pathlib import Path
from minigit import minigit_config
from minigit.objectstore import ObjectStoreFactory
from minigit.repository import Repository
from minigit.minigit_exceptions import (
    FilesystemError,
    ObjectNotFound,
    UnsupportedAlgorithm,
)

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_BUFFER_CAPACITY = 1000


class MiniGitParser:
    """Class to set up parsing arguments via argparse."""

    commands = ["init", "put", "get", "exists", "hash", "test_blob"]

    def __init__(self):
        """Initialize the argparse 'parser'."""

        program_name = "minigit"
        description = (
            "Command line tool to initialize a MiniGit repository and to store and"
            + " retrieve blobs in its content-addressable object store."
        )

        self.parser = ArgumentParser(
            prog=program_name,
            description=description,
        )

        # Add positional argument
        self.parser.add_argument(
            "command", choices=self.commands, help="Command to run"
        )

        # Add optional arguments
        self.parser.add_argument(
            "-path",
            dest="repo_path",
            default=minigit_config.REPO_DIR,
            help="Path of the MiniGit repository (default: .minigit)",
        )
        self.parser.add_argument(
            "-loglevel",
            dest="logging_level",
            help="Set logging level for the client",
        )
        self.parser.add_argument(
            "-dp", "-store_depth", dest="depth", help="Depth when sharding object ids"
        )
        self.parser.add_argument(
            "-wp", "-store_width", dest="width", help="Width when sharding object ids"
        )
        self.parser.add_argument(
            "-ap",
            "-store_algorithm",
            dest="algorithm",
            help="Algorithm to use when deriving object ids (ex. SHA-256)",
        )
        self.parser.add_argument(
            "-branch", dest="branch", help="Default branch HEAD points to on init"
        )
        self.parser.add_argument(
            "-file",
            dest="object_path",
            help="Path of the file to store or hash",
        )
        self.parser.add_argument(
            "-id",
            dest="object_id",
            help="Object id to work with",
        )

    def get_parser_args(self, argv=None):
        """Get command line arguments."""
        return self.parser.parse_args(argv)


class MiniGitClient:
    """Work with a MiniGit repository through the command line."""

    def __init__(self, repo_path):
        self.repository = Repository(repo_path)
        self._objectstore = None

    @property
    def objectstore(self):
        """Object store of the repository, created on first use."""
        if self._objectstore is None:
            factory = ObjectStoreFactory()
            module_name = "minigit.fileobjectstore"
            class_name = "FileObjectStore"
            properties = self.repository.load_properties()
            self._objectstore = factory.get_objectstore(
                module_name, class_name, properties
            )
            logging.info("MiniGitClient - ObjectStore initialized.")
        return self._objectstore

    def init(self, properties=None):
        """Initialize the repository and print what was created."""
        print("Initializing MiniGit repository...")
        status = self.repository.initialize(properties)
        if status.already_initialized:
            print(
                "Reinitializing existing MiniGit repository in"
                + f" {os.path.abspath(status.root)}"
            )
        for entry in status.created:
            print(f"Created: {os.path.join(status.root, entry)}")
        print("MiniGit repository initialized successfully!")
        return status

    def put(self, object_path):
        """Store a file's bytes and print its object id."""
        object_metadata = self.objectstore.store_object(Path(object_path))
        print(object_metadata.object_id)
        return object_metadata.object_id

    def get(self, object_id):
        """Write the exact bytes of an object to stdout."""
        content = self.objectstore.get(object_id)
        sys.stdout.flush()
        sys.stdout.buffer.write(content)
        sys.stdout.buffer.flush()
        return content

    def exists(self, object_id):
        """Print whether an object exists."""
        object_exists = self.objectstore.exists(object_id)
        print(object_exists)
        return object_exists

    def hash(self, object_path):
        """Print the object id a file would be stored under, without storing it."""
        with open(object_path, "rb") as file:
            object_id = self.objectstore.compute_object_id(file.read())
        print(object_id)
        return object_id

    def test_blob(self):
        """Store and read back sample blobs, showing that identical content is
        always stored under the same object id."""
        print("--- Testing Blob Storage ---")
        samples = [
            b"Hello, MiniGit!",
            b"This is some different content for a second blob.",
            b"Hello, MiniGit!",
        ]
        object_ids = []
        for content in samples:
            object_id = self.objectstore.put(content)
            read_content = self.objectstore.get(object_id)
            object_ids.append(object_id)
            print(f'Content: "{content.decode()}", Saved as hash: {object_id}')
            print(f'Read content for hash {object_id}: "{read_content.decode()}"')
            print(f"Content matches: {str(read_content == content).lower()}")
            print()
        print(
            f"Hash of identical content: {object_ids[0]} vs {object_ids[2]}"
            + f" (equal: {str(object_ids[0] == object_ids[2]).lower()})"
        )
        return object_ids


def _init_properties(args):
    """Build repository properties from the command line, or None if no store option
    was given."""
    options = {
        "store_depth": getattr(args, "depth"),
        "store_width": getattr(args, "width"),
        "store_algorithm": getattr(args, "algorithm"),
        "default_branch": getattr(args, "branch"),
    }
    if all(value is None for value in options.values()):
        return None
    properties = Repository.default_properties()
    for key, value in options.items():
        if value is not None:
            properties[key] = value
    return properties


def _setup_logging(logging_level_arg):
    """Configure the root logger. Records are held in memory until the repository root
    exists and `_attach_log_file` points them at `minigit_client.log`.

    :return: The buffering handler passed to `_attach_log_file`.
    """
    if logging_level_arg is None:
        logging_level = "INFO"
    else:
        logging_level = logging_level_arg.upper()
    memory_handler = MemoryHandler(
        capacity=LOG_BUFFER_CAPACITY, flushLevel=logging.CRITICAL + 1
    )
    logging.basicConfig(
        level=logging_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=[memory_handler],
    )
    return memory_handler


def _attach_log_file(memory_handler, repo_path):
    """Log to `minigit_client.log` in the repository root, starting with the records
    buffered so far."""
    python_log_file_path = Path(repo_path) / "minigit_client.log"
    if not os.path.exists(python_log_file_path):
        open(python_log_file_path, "w", encoding="utf-8").close()
    if memory_handler not in logging.getLogger().handlers:
        return
    file_handler = logging.FileHandler(python_log_file_path, encoding="utf-8")
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    memory_handler.setTarget(file_handler)
    memory_handler.flushLevel = logging.NOTSET
    memory_handler.flush()


def main(argv=None):
    """Entry point of the MiniGit client."""

    parser = MiniGitParser()
    args = parser.get_parser_args(argv)
    command = getattr(args, "command")
    repo_path = getattr(args, "repo_path")
    object_path = getattr(args, "object_path")
    object_id = getattr(args, "object_id")
    client = MiniGitClient(repo_path)
    memory_handler = _setup_logging(getattr(args, "logging_level"))

    try:
        if command == "init":
            client.init(_init_properties(args))
            _attach_log_file(memory_handler, repo_path)
            return 0

        # Can't use client app without first initializing the repository
        if not client.repository.is_initialized():
            print(
                f"fatal: not a MiniGit repository: {repo_path}."
                + " Use `minigit init` first.",
                file=sys.stderr,
            )
            return 1
        _attach_log_file(memory_handler, repo_path)

        if command in ("put", "hash") and object_path is None:
            print("error: '-file' option is required", file=sys.stderr)
            return 1
        if command in ("get", "exists") and object_id is None:
            print("error: '-id' option is required", file=sys.stderr)
            return 1

        if command == "put":
            client.put(object_path)
        elif command == "get":
            client.get(object_id)
        elif command == "exists":
            client.exists(object_id)
        elif command == "hash":
            client.hash(object_path)
        elif command == "test_blob":
            client.test_blob()
    except FilesystemError as fse:
        logging.error("MiniGitClient - %s: %s", command, fse)
        print(f"fatal: {fse}", file=sys.stderr)
        return 1
    except ObjectNotFound as onf:
        print(f"error: missing object {onf.object_id}", file=sys.stderr)
        return 1
    except (ValueError, KeyError, UnsupportedAlgorithm, OSError) as err:
        logging.error("MiniGitClient - %s: %s", command, err)
        print(f"error: {err}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
