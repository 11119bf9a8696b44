"""Filesystem walker and small helpers shared by the runner and planner."""

from __future__ import annotations

import gzip
import hashlib
import os
import re
import uuid
from typing import List, Tuple

from sqlreplay.core.errors import DiscoveryError
from sqlreplay.core.logging_utils import log_event

_GS_PATH_RE = re.compile(r"gs://(.*?)/(.*)")

_HTML_ENTITIES = (
    ("&#x27;", "'"),
    ("&quot;", '"'),
    ("&amp;", "&"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)


def file_extension(path: str) -> str:
    """Return the suffix starting at the last ``.`` of the basename, or ``""``."""
    name = os.path.basename(path)
    idx = name.rfind(".")
    if idx < 0:
        return ""
    return name[idx:]


def walk_files(root: str, *extensions: str) -> List[str]:
    """Walk ``root`` and return every non-directory file matching ``extensions``.

    Entries are visited depth-first in lexical order at each level, so the
    result is deterministic for a given tree. Symlinks are not followed.
    Without extensions every file is returned; otherwise a file is kept only
    when its extension (leading dot included) equals one of them exactly.

    Example:
        files = walk_files("/path/to/dir", ".sql")

    Args:
        root (str): Directory (or single file) to walk.
        *extensions (str): Extension filters such as ``".sql"``.

    Returns:
        List[str]: Matching file paths in traversal order.

    Raises:
        DiscoveryError: When the root or an entry below it cannot be read.
    """
    wanted = set(extensions)
    files: List[str] = []

    def _keep(path: str) -> bool:
        return not wanted or file_extension(path) in wanted

    def _walk(directory: str) -> None:
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as exc:
            raise DiscoveryError(f"unable to read directory {directory}: {exc}") from exc
        for entry in entries:
            path = os.path.join(directory, entry.name)
            try:
                is_dir = entry.is_dir(follow_symlinks=False)
            except OSError as exc:
                raise DiscoveryError(f"unable to stat {path}: {exc}") from exc
            if is_dir:
                _walk(path)
            elif _keep(path):
                files.append(path)

    try:
        is_root_dir = os.path.isdir(root)
        if not is_root_dir:
            os.lstat(root)
    except OSError as exc:
        raise DiscoveryError(f"unable to read {root}: {exc}") from exc
    if not is_root_dir:
        return [root] if _keep(root) else []
    _walk(root)
    return files


def get_os_env(key: str, default_value: str) -> str:
    """Look up ``key`` in the environment, falling back to ``default_value``."""
    value = os.environ.get(key)
    if value is None:
        log_event("config.default", {"key": key, "value": default_value})
        return default_value
    return value


def get_os_env_int(key: str, default_value: int) -> int:
    """Look up an integer environment variable, falling back when unset or invalid."""
    value = os.environ.get(key)
    if value is None:
        log_event("config.default", {"key": key, "value": default_value})
        return default_value
    try:
        return string_to_int(value)
    except ValueError:
        log_event("config.default", {"key": key, "value": default_value, "reason": "invalid integer"})
        return default_value


def string_to_int(value: str) -> int:
    return int(value.strip())


def is_gs_path(path: str) -> bool:
    """Return True when ``path`` points at Google Cloud Storage."""
    return path.startswith("gs://")


def bucket_name(gcs_path: str) -> Tuple[str, str]:
    """Split ``gs://bucket/path/to/object`` into ``(bucket, object)``.

    Raises:
        ValueError: When the path is not a ``gs://bucket/object`` URL.
    """
    match = _GS_PATH_RE.match(gcs_path)
    if not match:
        raise ValueError(f"not a gs://bucket/object path: {gcs_path}")
    return match.group(1), match.group(2)


def html_unescape(text: str) -> str:
    """Replace the handful of HTML entities that show up in exported SQL text."""
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def new_uuid() -> str:
    return str(uuid.uuid4())


def sha256_hex(data: str | bytes) -> str:
    """Return the hex SHA-256 digest of text or bytes."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).hexdigest()


def compress(data: bytes) -> bytes:
    """Gzip-compress ``data``."""
    return gzip.compress(data)


def uncompress(gz_bytes: bytes) -> bytes:
    """Decompress gzip bytes produced by :func:`compress` (or any gzip stream)."""
    return gzip.decompress(gz_bytes)
