from __future__ import annotations

from datetime import datetime
from pathlib import Path, PurePosixPath
from typing import Callable, Literal, Optional

from .env import PATHS

Scope = Literal["local", "target"]
SCOPES = ("local", "target")


class WorkDir:
    """Directory holding fetched configuration for one provisioning attempt.

    The name is synthesized on first use from a minute-granularity timestamp
    and stays fixed afterwards. "local" paths live under the installer's view
    of the target root; "target" paths are absolute on the installed system.
    Nothing is created until ensure() is called.
    """

    def __init__(
        self,
        *,
        target_root: str = PATHS.target_root,
        var_dir: str = PATHS.var_dir,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.target_root = target_root
        self.var_dir = var_dir
        self._now = now
        self._name: Optional[PurePosixPath] = None

    @property
    def name(self) -> PurePosixPath:
        if self._name is None:
            stamp = self._now().strftime("%Y%m%d%H%M")
            self._name = PurePosixPath(self.var_dir.lstrip("/")) / f"cm-{stamp}"
        return self._name

    def path(self, scope: Scope = "local") -> Path:
        if scope not in SCOPES:
            raise ValueError(f"Unknown work dir scope: {scope!r}")
        prefix = "/" if scope == "target" else self.target_root
        return Path(prefix) / self.name

    def ensure(self) -> Path:
        p = self.path("local")
        p.mkdir(parents=True, exist_ok=True)
        return p
