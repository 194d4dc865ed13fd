from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import BinaryIO
from urllib.parse import unquote, urlparse

import requests

logger = logging.getLogger(__name__)

HTTP_SCHEMES = {"http", "https"}
LOCAL_SCHEMES = {"", "file"}


def _discard(p: Path) -> None:
    if p.exists():
        p.unlink()


def _open_part(p: Path, mode: int) -> BinaryIO:
    # Permissions are fixed before any byte is written; umask may not widen them.
    fd = os.open(p, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
    os.fchmod(fd, mode)
    return os.fdopen(fd, "wb")


def _download_http(url: str, dst: Path, *, mode: int, timeout: float, chunk_bytes: int) -> None:
    with requests.get(url, stream=True, allow_redirects=True, timeout=timeout) as r:
        r.raise_for_status()
        with _open_part(dst, mode) as f:
            for chunk in r.iter_content(chunk_size=chunk_bytes):
                if chunk:
                    f.write(chunk)


def _copy_local(src: Path, dst: Path, *, mode: int) -> None:
    with open(src, "rb") as s, _open_part(dst, mode) as f:
        shutil.copyfileobj(s, f)


def get_file(
    url: str,
    local_path: str | os.PathLike,
    *,
    mode: int = 0o644,
    timeout: float = 60.0,
    chunk_bytes: int = 65536,
) -> bool:
    """Fetch url into local_path, created with permissions `mode`.

    http/https go through requests; file:// URLs and plain paths are copied.
    Data lands in a sibling ".part" file first and is only renamed into place
    when the transfer completed and is non-empty, so a failed transfer never
    leaves a truncated local_path behind.
    """

    dst = Path(local_path)
    part = dst.with_name(dst.name + ".part")
    parsed = urlparse(url)
    scheme = parsed.scheme.lower()

    if scheme not in HTTP_SCHEMES | LOCAL_SCHEMES:
        logger.error("Unsupported URL scheme '%s' in %s", scheme, url)
        return False

    try:
        dst.parent.mkdir(parents=True, exist_ok=True)
        if scheme in HTTP_SCHEMES:
            _download_http(url, part, mode=mode, timeout=timeout, chunk_bytes=chunk_bytes)
        else:
            src = Path(unquote(parsed.path) if scheme == "file" else url)
            _copy_local(src, part, mode=mode)
    except (requests.RequestException, OSError) as e:
        logger.warning("Download of %s failed: %s", url, e)
        _discard(part)
        return False

    size = part.stat().st_size
    if size == 0:
        logger.warning("Download of %s returned no data", url)
        _discard(part)
        return False

    os.replace(part, dst)
    logger.debug("Downloaded %s to %s (%s bytes)", url, str(dst), size)
    return True
