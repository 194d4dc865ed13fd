from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, TextIO

import yaml

from .base import Provisioner

logger = logging.getLogger(__name__)

MINION_MASTER_CONF = "etc/salt/minion.d/master.conf"
PKI_DIR = "etc/salt/pki/minion"


class SaltProvisioner(Provisioner):
    name = "salt"
    package_names = ("salt-minion",)
    services = ("salt-minion",)

    @property
    def private_key_path(self) -> Path:
        return self.target_path(f"{PKI_DIR}/minion.pem")

    @property
    def public_key_path(self) -> Path:
        return self.target_path(f"{PKI_DIR}/minion.pub")

    def update_configuration(self) -> bool:
        master = self.config.master
        if not master:
            # Minion falls back to its built-in master name.
            logger.info("No master configured; keeping salt-minion defaults")
            return True

        p = self.target_path(MINION_MASTER_CONF)
        if self.dry_run:
            logger.info("Would write %s (master=%s)", str(p), master)
            return True
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(yaml.safe_dump({"master": master}, default_flow_style=False), encoding="utf-8")
        except OSError as e:
            logger.error("Could not write %s: %s", str(p), e)
            return False
        logger.info("Configured salt master %s", master)
        return True

    def apply_client_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        return self.run_in_target(
            ["salt-call", "--log-level=info", "--retcode-passthrough", "state.highstate"],
            stdout=stdout,
            stderr=stderr,
        )

    def apply_masterless_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        wd = self.config.work_dir("target")
        return self.run_in_target(
            [
                "salt-call",
                "--log-level=info",
                "--retcode-passthrough",
                "--local",
                f"--file-root={wd / 'salt'}",
                f"--pillar-root={wd / 'pillar'}",
                "state.highstate",
            ],
            stdout=stdout,
            stderr=stderr,
        )
