"""Test module for the MiniGit command line client"""
import logging
import os
from logging.handlers import MemoryHandler
from pathlib import Path
import pytest
from minigit import client
from minigit.repository import Repository

# pylint: disable=W0212


@pytest.fixture(name="repo_path")
def init_repo_path(tmp_path):
    """Path of a repository created through the client."""
    repo_path = (tmp_path / ".minigit").as_posix()
    assert client.main(["init", "-path", repo_path]) == 0
    return repo_path


def test_init(tmp_path, capsys):
    """Test creating a repository through the client."""
    repo_path = (tmp_path / ".minigit").as_posix()
    assert client.main(["init", "-path", repo_path]) == 0
    captured = capsys.readouterr()
    assert "MiniGit repository initialized successfully!" in captured.out
    assert os.path.isdir(repo_path + "/objects")
    assert os.path.isdir(repo_path + "/refs/heads")
    assert Path(repo_path + "/HEAD").read_text(encoding="utf-8") == (
        "ref: refs/heads/main\n"
    )
    assert os.path.exists(repo_path + "/minigit_client.log")


def test_init_twice(repo_path, capsys):
    """Test a second init reports the existing repository."""
    assert client.main(["init", "-path", repo_path]) == 0
    captured = capsys.readouterr()
    assert "Reinitializing existing MiniGit repository" in captured.out
    assert "Created:" not in captured.out


def test_init_store_options(tmp_path):
    """Test init records the store options given on the command line."""
    repo_path = (tmp_path / ".minigit").as_posix()
    args = ["init", "-path", repo_path, "-dp", "1", "-ap", "SHA-1", "-branch", "trunk"]
    assert client.main(args) == 0
    properties = Repository(repo_path).load_properties()
    assert properties["store_depth"] == 1
    assert properties["store_width"] == 2
    assert properties["store_algorithm"] == "SHA-1"
    assert os.path.isfile(repo_path + "/refs/heads/trunk")


def test_init_unsupported_algorithm(tmp_path, capsys):
    """Test init exits non-zero for an algorithm that is not accepted."""
    repo_path = (tmp_path / ".minigit").as_posix()
    assert client.main(["init", "-path", repo_path, "-ap", "MD5"]) == 1
    assert "error:" in capsys.readouterr().err


def test_init_filesystem_error(tmp_path, capsys):
    """Test init exits non-zero with a fatal message when the layout cannot be made."""
    repo_path = tmp_path / ".minigit"
    repo_path.write_text("not a directory", encoding="utf-8")
    assert client.main(["init", "-path", repo_path.as_posix()]) == 1
    assert capsys.readouterr().err.startswith("fatal:")


def test_put(repo_path, blobs, tmp_path, capsys):
    """Test storing a file prints its object id."""
    file_path = tmp_path / "null_byte.bin"
    file_path.write_bytes(blobs["null_byte"]["content"])
    capsys.readouterr()
    assert client.main(["put", "-path", repo_path, "-file", file_path.as_posix()]) == 0
    object_id = capsys.readouterr().out.strip()
    assert object_id == blobs["null_byte"]["sha256"]
    assert Repository(repo_path).open_store().get(object_id) == (
        blobs["null_byte"]["content"]
    )


def test_get(repo_path, blobs, capsysbinary):
    """Test get writes the exact bytes of an object to stdout."""
    content = blobs["lines"]["content"]
    object_id = Repository(repo_path).open_store().put(content)
    capsysbinary.readouterr()
    assert client.main(["get", "-path", repo_path, "-id", object_id]) == 0
    assert capsysbinary.readouterr().out == content


def test_get_missing_object(repo_path, blobs, capsys):
    """Test get exits non-zero with a missing object message."""
    object_id = blobs["hello"]["sha256"]
    assert client.main(["get", "-path", repo_path, "-id", object_id]) == 1
    assert f"error: missing object {object_id}" in capsys.readouterr().err


def test_get_malformed_id(repo_path, capsys):
    """Test get exits non-zero for an id that is not a hex digest."""
    assert client.main(["get", "-path", repo_path, "-id", "../HEAD"]) == 1
    assert "error:" in capsys.readouterr().err


def test_put_missing_file(repo_path, tmp_path, capsys):
    """Test put exits non-zero when the file does not exist."""
    missing = (tmp_path / "missing.txt").as_posix()
    assert client.main(["put", "-path", repo_path, "-file", missing]) == 1
    assert "error:" in capsys.readouterr().err


def test_put_requires_file_option(repo_path, capsys):
    """Test put without '-file' exits non-zero."""
    assert client.main(["put", "-path", repo_path]) == 1
    assert "'-file' option is required" in capsys.readouterr().err


def test_exists(repo_path, blobs, capsys):
    """Test exists prints whether an object is present."""
    object_id = blobs["hello"]["sha256"]
    capsys.readouterr()
    assert client.main(["exists", "-path", repo_path, "-id", object_id]) == 0
    assert capsys.readouterr().out.strip() == "False"
    Repository(repo_path).open_store().put(blobs["hello"]["content"])
    assert client.main(["exists", "-path", repo_path, "-id", object_id]) == 0
    assert capsys.readouterr().out.strip() == "True"


def test_hash_does_not_store(repo_path, blobs, tmp_path, capsys):
    """Test hash prints the object id without storing the object."""
    file_path = tmp_path / "hello.txt"
    file_path.write_bytes(blobs["hello"]["content"])
    capsys.readouterr()
    assert client.main(["hash", "-path", repo_path, "-file", file_path.as_posix()]) == 0
    assert capsys.readouterr().out.strip() == blobs["hello"]["sha256"]
    assert not Repository(repo_path).open_store().exists(blobs["hello"]["sha256"])


def test_test_blob(repo_path, blobs, capsys):
    """Test the blob demonstration stores identical content under one id."""
    capsys.readouterr()
    assert client.main(["test_blob", "-path", repo_path]) == 0
    captured = capsys.readouterr()
    hello_id = blobs["hello"]["sha256"]
    assert f'Content: "Hello, MiniGit!", Saved as hash: {hello_id}' in captured.out
    assert "Content matches: false" not in captured.out
    assert f"Hash of identical content: {hello_id} vs {hello_id} (equal: true)" in (
        captured.out
    )
    assert Repository(repo_path).open_store().count() == 2


def test_command_requires_repository(tmp_path, capsys):
    """Test commands other than init exit non-zero outside a repository."""
    repo_path = (tmp_path / "nothing").as_posix()
    assert client.main(["test_blob", "-path", repo_path]) == 1
    assert "fatal: not a MiniGit repository" in capsys.readouterr().err


def test_unknown_command(capsys):
    """Test argparse rejects unknown commands with exit code 2."""
    with pytest.raises(SystemExit) as exc_info:
        client.main(["commit"])
    assert exc_info.value.code == 2
    capsys.readouterr()


def test_attach_log_file_writes_buffered_records(tmp_path, caplog):
    """Test records logged before the repository root exists reach the log file."""
    caplog.set_level(logging.INFO)
    repo_path = tmp_path / ".minigit"
    memory_handler = MemoryHandler(capacity=100, flushLevel=logging.CRITICAL + 1)
    root_logger = logging.getLogger()
    root_logger.addHandler(memory_handler)
    try:
        Repository(repo_path).initialize()
        client._attach_log_file(memory_handler, repo_path)
        logging.info("MiniGitClient - test: after attaching the log file")
    finally:
        root_logger.removeHandler(memory_handler)
        file_handler = memory_handler.target
        memory_handler.close()
        if file_handler is not None:
            file_handler.close()
    log_text = (repo_path / "minigit_client.log").read_text(encoding="utf-8")
    assert "Repository - initialize: Initializing MiniGit repository" in log_text
    assert "MiniGitClient - test: after attaching the log file" in log_text


def test_init_failure_reported_once(tmp_path, capsys):
    """Test a failed init prints its fatal message a single time."""
    repo_path = tmp_path / ".minigit"
    repo_path.write_text("not a directory", encoding="utf-8")
    assert client.main(["init", "-path", repo_path.as_posix()]) == 1
    assert capsys.readouterr().err.count("fatal:") == 1
