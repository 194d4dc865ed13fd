from __future__ import annotations

import logging
from typing import Optional, Sequence, TextIO

from .command import run_ok

logger = logging.getLogger(__name__)


def chroot_ok(
    target_root: str,
    argv: Sequence[str],
    *,
    ok_codes: Sequence[int] = (0,),
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    dry_run: bool = False,
) -> bool:
    """Run a command inside target root, returning True on success."""

    return run_ok(
        ["chroot", target_root, *argv],
        ok_codes=ok_codes,
        stdout=stdout,
        stderr=stderr,
        dry_run=dry_run,
    )
