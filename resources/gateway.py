"""
resources/gateway.py -- Read files from one fixed root, and nothing outside it.

Validation runs in two stages:

  1. Lexical, before the filesystem is touched at all. The requested path is
     checked as given, after every round of percent-decoding (so %2e%2e%2f and
     %252e%252e%252f are caught), and after posixpath.normpath. Any of these
     forms being absolute, containing a ".." segment, or containing a NUL byte
     rejects the request. Backslashes count as separators.

  2. Containment. The joined path is resolved (symlinks followed) and must
     still sit under the resolved root. A symlink inside the root that points
     outside it is rejected the same way as "../", and so is a symlink loop.

Errors never carry a filesystem path: InvalidPathError (400) for anything
that fails validation, NotFoundError (404) for a missing file or a directory,
InternalError (500) for any other read failure.

Layer rule: resources/ imports from core/ only.
"""

from __future__ import annotations

import errno
import posixpath
import re
from pathlib import Path
from urllib.parse import unquote

from core.deadline import Deadline, check_deadline
from core.errors import InternalError, InvalidPathError, NotFoundError

_CHUNK_SIZE = 64 * 1024

# Input still changing after this many decode passes is rejected outright.
_MAX_DECODE_PASSES = 3

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


class ResourceGateway:
    """File reader confined to root.

    Usage:
        gateway = ResourceGateway(Path("/srv/files"))
        data = gateway.fetch("readme.txt")
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root).resolve()

    def fetch(self, relative_path: str, deadline: Deadline | None = None) -> bytes:
        """Return the contents of root/relative_path.

        Raises:
            InvalidPathError: traversal, absolute path, or other invalid input.
            NotFoundError:    the file does not exist or is not a regular file.
            InternalError:    the file exists but could not be read.
        """
        target = self.resolve(relative_path)
        check_deadline(deadline)
        chunks: list[bytes] = []
        try:
            with target.open("rb") as fh:
                while True:
                    check_deadline(deadline)
                    chunk = fh.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    chunks.append(chunk)
        except (FileNotFoundError, IsADirectoryError, NotADirectoryError) as exc:
            raise NotFoundError() from exc
        except OSError as exc:
            if exc.errno == errno.ELOOP:
                raise InvalidPathError() from exc
            raise InternalError("file error") from exc
        return b"".join(chunks)

    def resolve(self, relative_path: str) -> Path:
        """Validate relative_path and return the absolute path it names under root."""
        normalized = validate_relative_path(relative_path)
        try:
            candidate = (self.root / normalized).resolve()
        except (RuntimeError, OSError) as exc:
            # Symlink loop (RuntimeError before Python 3.13).
            raise InvalidPathError() from exc
        if candidate != self.root and self.root not in candidate.parents:
            raise InvalidPathError()
        return candidate


def validate_relative_path(relative_path: str) -> str:
    """Return the normalized, POSIX-style form of a safe relative path.

    Raises InvalidPathError for anything that could name a location outside
    the directory it is joined to.
    """
    if not relative_path:
        raise InvalidPathError()

    forms = [relative_path]
    current = relative_path
    for _ in range(_MAX_DECODE_PASSES):
        decoded = unquote(current)
        if decoded == current:
            break
        forms.append(decoded)
        current = decoded
    else:
        if unquote(current) != current:
            raise InvalidPathError()

    for form in forms:
        _check_form(form)

    normalized = posixpath.normpath(relative_path.replace("\\", "/"))
    _check_form(normalized)
    if normalized in (".", ""):
        raise InvalidPathError()
    return normalized


def _check_form(path: str) -> None:
    if "\x00" in path:
        raise InvalidPathError()
    unified = path.replace("\\", "/")
    if unified.startswith("/") or _DRIVE_RE.match(unified):
        raise InvalidPathError()
    if ".." in unified.split("/"):
        raise InvalidPathError()
