"""General-purpose helper utilities used across itersolve modules."""

from __future__ import annotations

import hashlib
import importlib
import os
import tempfile
from datetime import datetime
from typing import Any


def timestamp_id() -> str:
    """Return a compact timestamp string suitable for directory or run naming.

    Returns:
        A string like ``20260206_143021``.
    """
    return datetime.now().strftime("%Y%m%d_%H%M%S")


def ensure_dir(path: str) -> str:
    """Create *path* (and parents) if it does not exist yet.

    Args:
        path: Directory path to create.

    Returns:
        The same *path* for chaining convenience.
    """
    os.makedirs(path, exist_ok=True)
    return path


def bytes_sha256(data: bytes) -> str:
    """Compute the SHA-256 hex digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def file_sha256(path: str) -> str:
    """Compute the SHA-256 hex digest of a file.

    Args:
        path: Path to the file.

    Returns:
        Lowercase hex digest string.

    Raises:
        FileNotFoundError: If *path* does not exist.
    """
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def atomic_write_bytes(path: str, data: bytes) -> None:
    """Write *data* to *path* so readers never see a partial file.

    The bytes go to a temporary file in the same directory, are flushed to
    disk, and the file is then renamed over *path*.

    Args:
        path: Destination file path.
        data: Full file contents.
    """
    directory = os.path.dirname(os.path.abspath(path))
    ensure_dir(directory)
    fd, tmp_path = tempfile.mkstemp(
        prefix="." + os.path.basename(path) + ".", suffix=".tmp", dir=directory
    )
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def import_object(ref: str) -> Any:
    """Resolve a ``"package.module:attribute"`` reference.

    Args:
        ref: Import path and attribute separated by a colon.

    Returns:
        The referenced object.

    Raises:
        ValueError: If *ref* is not of the form ``module:attr``.
    """
    module_name, sep, attr = ref.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected 'module:attribute', got '{ref}'")
    obj: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj
