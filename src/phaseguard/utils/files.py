"""
File helpers for whole-document JSON persistence.

Documents are rewritten in full on every mutation. Writes go to a temporary
file in the same directory and are moved into place with os.replace, so a
concurrent reader sees either the previous or the new document.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any
from urllib.parse import urlparse


def read_json(path: Path) -> Any:
    """
    Read and parse a JSON document.

    Raises:
        FileNotFoundError: If the file does not exist.
        json.JSONDecodeError: If the content is not valid JSON.
    """
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def write_json_atomic(path: Path, data: Any) -> None:
    """
    Write ``data`` as pretty-printed JSON, replacing ``path`` atomically.

    Raises:
        OSError: If the directory or file cannot be written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            json.dump(data, handle, indent=2)
            handle.write("\n")
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(tmp, path)
    finally:
        if os.path.exists(tmp):
            os.unlink(tmp)


def sanitize_target_for_path(target: str) -> str:
    """
    Sanitize a target URL/hostname for use in filesystem paths.

    Converts URLs like 'https://example.com:8443/app' to 'example.com'.
    """
    if "://" in target:
        parsed = urlparse(target)
        sanitized = parsed.netloc or parsed.path
    else:
        sanitized = target

    # Drop credentials and port
    sanitized = sanitized.rsplit("@", 1)[-1].split(":")[0]
    sanitized = re.sub(r'[<>:"/\\|?*]', "_", sanitized)
    sanitized = sanitized.strip(". ")

    return sanitized or "unknown_target"
