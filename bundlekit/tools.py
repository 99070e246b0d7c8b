import hashlib
import os
import shutil
import stat
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests

from .errors import BundlerError


def ensure_tool(name: str) -> str:
    """Return the absolute path of `name` on PATH or fail naming the tool."""
    path = shutil.which(name)
    if not path:
        raise BundlerError(f"{name} not found on PATH")
    return path


def _sha256(path: Path) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(1024 * 1024), b""):
            h.update(chunk)
    return h.hexdigest()


def resolve_tool(
    source: str,
    cache_dir,
    sha256: Optional[str] = None,
    token: Optional[str] = None,
) -> str:
    """
    If `source` is an http(s) URL, download it into `cache_dir` and return the local path.
    Otherwise return `source` unchanged.
    A cached non-empty file is reused. When `sha256` is given the file must match it.
    """
    parsed = urlparse(source)
    if parsed.scheme not in ("http", "https"):
        return source

    target = Path(cache_dir)
    target.mkdir(parents=True, exist_ok=True)
    filename = parsed.path.rstrip("/").split("/")[-1]
    if not filename or filename in (".", ".."):
        raise BundlerError(f"cannot derive a file name from {source}")
    out = target / filename

    if not (out.exists() and out.stat().st_size > 0):
        hdrs = {}
        if token:
            hdrs["Authorization"] = f"Bearer {token}"
        # a partial download must never land on the cached path
        part = out.with_name(out.name + ".part")
        try:
            with requests.get(source, headers=hdrs, stream=True, timeout=300) as r:
                r.raise_for_status()
                with open(part, "wb") as f:
                    for chunk in r.iter_content(chunk_size=1024 * 1024):
                        if chunk:
                            f.write(chunk)
            os.replace(part, out)
        finally:
            if part.exists():
                part.unlink()

    if sha256:
        actual = _sha256(out)
        if actual.lower() != sha256.lower():
            out.unlink()
            raise BundlerError(f"hash mismatch for {filename}: expected {sha256}, got {actual}")

    mode = os.stat(out).st_mode
    os.chmod(out, mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(out)
