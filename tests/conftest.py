"""Pytest overall configuration file for fixtures"""

import pytest
from minigit.repository import Repository
from minigit.fileobjectstore import FileObjectStore


def pytest_addoption(parser):
    """Run slow tests only when a flag is set on pytest."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


@pytest.fixture(name="repo")
def init_repo(tmp_path):
    """Initialized MiniGit repository in a temporary folder."""
    repository = Repository(tmp_path / "repo" / ".minigit")
    repository.initialize()
    return repository


@pytest.fixture(name="props")
def init_props(repo):
    """Properties to initialize FileObjectStore."""
    properties = {
        "store_path": repo.root,
        "store_depth": 0,
        "store_width": 2,
        "store_algorithm": "SHA-256",
    }
    return properties


@pytest.fixture(name="store")
def init_store(props):
    """Create FileObjectStore instance for all tests."""
    store = FileObjectStore(props)
    return store


@pytest.fixture(name="blobs")
def init_blobs():
    """Shared test harness data.
    - sha256: object id of the content in a SHA-256 store
    - sha1: object id of the content in a SHA-1 store
    """
    test_blobs = {
        "hello": {
            "content": b"Hello, MiniGit!",
            "sha256": "3939cf126f79b598f7ce8ba8a80ea49abc51a22ab46b8c7f2a67ce02ed932146",
            "sha1": "d48077c7ccc3c969a9802dc24d5b51469679aaea",
        },
        "different": {
            "content": b"different content",
            "sha256": "9d9d56051b7344b869e54a8ecebf1b39f21fe2449222bbdd135e9a608b216738",
            "sha1": "93e08f97cdb7d41062f018fbd91ebe08387ad04c",
        },
        "second_blob": {
            "content": b"This is some different content for a second blob.",
            "sha256": "dc203ceb5677c6b61dc99ccc6b960ddb39ea3f5722cdb84ad89a37be715923d7",
            "sha1": "24b76ecbbaf31bb9d5f7fbcc2e5a8c3f41936264",
        },
        "empty": {
            "content": b"",
            "sha256": "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855",
            "sha1": "da39a3ee5e6b4b0d3255bfef95601890afd80709",
        },
        "null_byte": {
            "content": b"a\x00b\n",
            "sha256": "3a100994c4e38751871e6e8eef9adad2b20177fdeaf650daacdcd74f4c9421e3",
        },
        "lines": {
            "content": b"line one\nline two\n",
            "sha256": "e9024f1a07d29d52ad3aa5e1a18e94db1f3a9fd32b89e39d47c472cd99071e13",
        },
    }
    return test_blobs
