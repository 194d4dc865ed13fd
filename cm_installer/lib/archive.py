from __future__ import annotations

import logging
from pathlib import Path

from .command import run_cmd

logger = logging.getLogger(__name__)


def extract_tar(archive: str | Path, dest: str | Path, *, cwd: str | None = None) -> None:
    """Extract a (compressed) tar archive into dest using the external tar tool.

    Raises RuntimeError if tar exits non-zero.
    """

    Path(dest).mkdir(parents=True, exist_ok=True)
    run_cmd(["tar", "xf", str(archive), "-C", str(dest)], cwd=cwd)
    logger.info("Extracted %s into %s", str(archive), str(dest))
