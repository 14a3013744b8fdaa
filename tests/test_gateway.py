"""Unit tests for resources/gateway.py -- confined file reads.

Covers:
- validate_relative_path() accepts plain relative names and normalizes them
- traversal in raw, percent-encoded and double-encoded forms is rejected
- symlinks pointing outside the root, and symlink loops, are rejected
- missing files and directories raise NotFoundError
- an expired Deadline stops the read
"""

import os
import time

import pytest

from core.deadline import Deadline
from core.errors import DeadlineExceededError, InvalidPathError, NotFoundError
from resources.gateway import ResourceGateway, validate_relative_path


@pytest.fixture
def root(tmp_path):
    base = tmp_path / "root"
    (base / "sub").mkdir(parents=True)
    (base / "a.txt").write_bytes(b"alpha")
    (base / "sub" / "b.txt").write_bytes(b"beta")
    (tmp_path / "outside.txt").write_bytes(b"outside")
    return base


@pytest.fixture
def gateway(root):
    return ResourceGateway(root)


@pytest.mark.parametrize(
    "path,expected",
    [
        ("a.txt", "a.txt"),
        ("sub/b.txt", "sub/b.txt"),
        ("./sub/b.txt", "sub/b.txt"),
        ("sub//b.txt", "sub/b.txt"),
        ("sub/./b.txt", "sub/b.txt"),
        ("..hidden", "..hidden"),
    ],
)
def test_valid_paths_normalized(path, expected):
    assert validate_relative_path(path) == expected


@pytest.mark.parametrize(
    "path",
    [
        "",
        ".",
        "..",
        "../outside.txt",
        "sub/../../outside.txt",
        "/etc/passwd",
        "\\etc\\passwd",
        "C:/Windows/win.ini",
        "..\\outside.txt",
        "%2e%2e/outside.txt",
        "%2E%2E%2Foutside.txt",
        "%252e%252e%252foutside.txt",
        "%2fetc/passwd",
        "a.txt\x00.png",
        "a.txt%00",
        "%25252525252e",
    ],
)
def test_invalid_paths_rejected(path):
    with pytest.raises(InvalidPathError):
        validate_relative_path(path)


def test_fetch_reads_file(gateway):
    assert gateway.fetch("a.txt") == b"alpha"
    assert gateway.fetch("sub/b.txt") == b"beta"


def test_fetch_large_file(gateway, root):
    payload = os.urandom(200 * 1024)
    (root / "big.bin").write_bytes(payload)
    assert gateway.fetch("big.bin") == payload


def test_fetch_traversal_rejected(gateway):
    with pytest.raises(InvalidPathError):
        gateway.fetch("../outside.txt")


def test_symlink_escape_rejected(gateway, root, tmp_path):
    os.symlink(tmp_path / "outside.txt", root / "link.txt")
    with pytest.raises(InvalidPathError):
        gateway.fetch("link.txt")


def test_symlink_inside_root_allowed(gateway, root):
    os.symlink(root / "a.txt", root / "alias.txt")
    assert gateway.fetch("alias.txt") == b"alpha"


def test_symlink_loop_rejected(gateway, root):
    os.symlink(root / "loop_b", root / "loop_a")
    os.symlink(root / "loop_a", root / "loop_b")
    with pytest.raises(InvalidPathError) as excinfo:
        gateway.fetch("loop_a")
    assert str(root) not in excinfo.value.message


def test_missing_file(gateway):
    with pytest.raises(NotFoundError):
        gateway.fetch("missing.txt")


def test_directory_is_not_found(gateway):
    with pytest.raises(NotFoundError):
        gateway.fetch("sub")


def test_error_messages_carry_no_path(gateway, root):
    with pytest.raises(NotFoundError) as excinfo:
        gateway.fetch("missing.txt")
    assert str(root) not in excinfo.value.message


def test_expired_deadline(gateway):
    with pytest.raises(DeadlineExceededError):
        gateway.fetch("a.txt", deadline=Deadline(time.monotonic() - 1))
