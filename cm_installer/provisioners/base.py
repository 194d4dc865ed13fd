from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Sequence, TextIO

from ..configuration import Configuration
from ..definitions import fetch_config
from ..keys import KeysNotFetched, fetch_keys
from ..lib.chroot import chroot_ok
from ..lib.lock_guard import package_lock_path, without_lock
from ..lib.retry import with_retries
from ..mode import Mode, resolve_mode

logger = logging.getLogger(__name__)


class State(str, Enum):
    CONSTRUCTED = "constructed"
    PREPARING = "preparing"
    PREPARED = "prepared"
    APPLYING = "applying"
    CONVERGED = "converged"
    FAILED = "failed"


class ProvisionerStateError(RuntimeError):
    pass


class Provisioner(ABC):
    """Brings the target under control of one configuration management system.

    An instance is bound to a single Configuration and makes exactly one
    forward pass: prepare() then run(). Subclasses supply the backend
    specific pieces, such as key locations and the apply commands.

    Client mode: update_configuration() then apply_client_mode(), retried
    up to auth_attempts times with auth_time_out seconds in between.

    Masterless mode: fetch the definitions archive into the work dir, then
    apply_masterless_mode() once.

    Both modes run with the package manager lock of the target moved aside,
    since applying the configuration usually installs packages.
    """

    # Backend id used by the registry.
    name: str = ""
    package_names: Sequence[str] = ()
    services: Sequence[str] = ()

    def __init__(self, config: Configuration, *, dry_run: bool = False) -> None:
        logger.info("Initializing provisioner %s", type(self).__name__)
        self.config = config
        self.dry_run = dry_run
        self.state = State.CONSTRUCTED
        self._mode: Optional[Mode] = None

    @property
    def target_root(self) -> str:
        return self.config.target_root

    @property
    def mode(self) -> Mode:
        if self._mode is None:
            self._mode = resolve_mode(self.config.master, self.config.definitions_url)
            logger.info("Provisioner mode: %s", self._mode.value)
        return self._mode

    def is_mode(self, value: Mode) -> bool:
        return self.mode == value

    def packages(self) -> Dict[str, List[str]]:
        """Packages the target needs, e.g. {"install": ["salt-minion"]}."""

        if not self.package_names:
            return {}
        return {"install": list(self.package_names)}

    def target_path(self, rel: str | Path) -> Path:
        return Path(self.target_root) / str(rel).lstrip("/")

    def _transition(self, expected: Sequence[State], new: State) -> None:
        if self.state not in expected:
            raise ProvisionerStateError(
                f"Cannot move from {self.state.value} to {new.value} "
                f"(expected {', '.join(s.value for s in expected)})"
            )
        self.state = new

    def prepare(self) -> None:
        """Acquire what the resolved mode needs before run().

        In client mode with a keys_url the key pair is installed into the
        target; failing to get it raises KeysNotFetched. Masterless mode
        fetches its definitions in run().
        """

        self._transition([State.CONSTRUCTED], State.PREPARING)
        try:
            if self.is_mode(Mode.CLIENT) and self.config.keys_url:
                if not self.fetch_keys():
                    raise KeysNotFetched(f"Authentication keys not fetched from {self.config.keys_url}")
        except Exception:
            self.state = State.FAILED
            raise
        self.state = State.PREPARED

    def fetch_keys(self) -> bool:
        if not self.config.keys_url:
            return False
        private, public = self.private_key_path, self.public_key_path
        if self.dry_run:
            logger.info("Would fetch keys from %s into %s, %s", self.config.keys_url, private, public)
            return True
        return fetch_keys(self.config.keys_url, private, public)

    def run(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> bool:
        """Apply the configuration. Returns True if the target converged."""

        self._transition([State.PREPARED], State.APPLYING)
        try:
            with without_lock(package_lock_path(self.target_root)):
                if self.is_mode(Mode.MASTERLESS):
                    ok = self.run_masterless_mode(stdout, stderr)
                else:
                    ok = self.run_client_mode(stdout, stderr)
        except Exception:
            self.state = State.FAILED
            raise

        self.state = State.CONVERGED if ok else State.FAILED
        logger.info("Provisioning %s", "succeeded" if ok else "failed")

        if ok and self.config.enable_services:
            self.enable_services()
        return ok

    def run_masterless_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        return self.fetch_config() and self.apply_masterless_mode(stdout, stderr)

    def run_client_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        if not self.update_configuration():
            logger.error("Could not update %s configuration", self.name or type(self).__name__)
            return False
        return with_retries(
            self.config.auth_attempts,
            self.config.auth_time_out,
            lambda _i: self.apply_client_mode(stdout, stderr),
        )

    def fetch_config(self) -> bool:
        url = self.config.definitions_url
        if not url:
            logger.error("No definitions_url configured")
            return False
        return fetch_config(url, self.config.ensure_work_dir(), cwd=self.target_root)

    def enable_services(self) -> None:
        for svc in self.services:
            if not self.run_in_target(["systemctl", "enable", svc]):
                logger.warning("Could not enable %s on the target system", svc)

    def run_in_target(
        self,
        argv: Sequence[str],
        *,
        ok_codes: Sequence[int] = (0,),
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> bool:
        return chroot_ok(self.target_root, argv, ok_codes=ok_codes, stdout=stdout, stderr=stderr, dry_run=self.dry_run)

    @property
    @abstractmethod
    def private_key_path(self) -> Path:
        raise NotImplementedError

    @property
    @abstractmethod
    def public_key_path(self) -> Path:
        raise NotImplementedError

    @abstractmethod
    def update_configuration(self) -> bool:
        """Point the backend at the master. Returns False on failure."""
        raise NotImplementedError

    @abstractmethod
    def apply_client_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        raise NotImplementedError

    @abstractmethod
    def apply_masterless_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        """Apply the definitions unpacked in the work dir."""
        raise NotImplementedError
