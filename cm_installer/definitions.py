from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .lib.archive import extract_tar
from .lib.transfer import get_file

logger = logging.getLogger(__name__)

CONFIG_LOCAL_FILENAME = "config.tgz"


def _discard(p: Path) -> None:
    try:
        p.unlink(missing_ok=True)
    except OSError as e:
        logger.warning("Could not remove %s: %s", str(p), e)


def fetch_config(config_url: str, work_dir: str | Path, *, cwd: Optional[str] = None) -> bool:
    """Download the configuration archive into work_dir and unpack it there.

    Never raises: any failure is logged and reported as False. A failed
    extraction removes the downloaded archive so the next attempt starts clean.
    """

    wd = Path(work_dir)
    archive = wd / CONFIG_LOCAL_FILENAME
    try:
        wd.mkdir(parents=True, exist_ok=True)
        if not get_file(config_url, archive):
            logger.error("Could not fetch configuration from %s", config_url)
            return False
        extract_tar(archive, wd, cwd=cwd)
    except Exception:
        logger.exception("Could not unpack configuration from %s", config_url)
        _discard(archive)
        return False
    return True
