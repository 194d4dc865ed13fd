from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from typing import Optional, Sequence, TextIO

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    cwd: str | None = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    dry_run: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Always logs the command.
    - Captures stdout/stderr; when stdout/stderr streams are given, the
      captured output is also forwarded to them.
    - dry_run logs but does not execute.
    """

    argv_list = list(argv)
    logger.info("CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, stdout="", stderr="")

    p = subprocess.run(
        argv_list,
        text=True,
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
        cwd=cwd,
    )

    if p.stdout:
        logger.debug("STDOUT %s", p.stdout.strip())
        if stdout is not None:
            stdout.write(p.stdout)
    if p.stderr:
        logger.debug("STDERR %s", p.stderr.strip())
        if stderr is not None:
            stderr.write(p.stderr)

    if check and p.returncode != 0:
        raise RuntimeError(f"Command failed ({p.returncode}): {_fmt_argv(argv_list)}\n{p.stderr}")

    return CmdResult(argv=argv_list, returncode=p.returncode, stdout=p.stdout, stderr=p.stderr)


def run_ok(
    argv: Sequence[str],
    *,
    ok_codes: Sequence[int] = (0,),
    cwd: str | None = None,
    stdout: Optional[TextIO] = None,
    stderr: Optional[TextIO] = None,
    dry_run: bool = False,
) -> bool:
    """Run a command and reduce the outcome to a boolean.

    A missing executable counts as a failure, same as a non-zero exit.
    """

    try:
        r = run_cmd(argv, check=False, cwd=cwd, stdout=stdout, stderr=stderr, dry_run=dry_run)
    except OSError as e:
        logger.warning("Could not execute %s: %s", _fmt_argv(list(argv)), e)
        return False

    if r.returncode not in ok_codes:
        logger.info("Command exited with %s: %s", r.returncode, _fmt_argv(r.argv))
        return False
    return True
