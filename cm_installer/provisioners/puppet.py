from __future__ import annotations

import logging
import re
import socket
from pathlib import Path
from typing import Optional, TextIO

from .base import Provisioner

logger = logging.getLogger(__name__)

PUPPET_CONF = "etc/puppet/puppet.conf"
SSL_DIR = "var/lib/puppet/ssl"
# With --detailed-exitcodes, 2 means "changes were applied".
OK_CODES = (0, 2)

_SECTION_RE = re.compile(r"^\s*\[([^\]]+)\]")


def set_main_option(text: str, key: str, value: str) -> str:
    """Set key in the [main] section of puppet.conf text.

    Works line by line so comments and the layout of other settings survive.
    """

    key_re = re.compile(rf"^\s*{re.escape(key)}\s*=")
    lines = text.splitlines()
    section = None
    main_at = None
    for i, line in enumerate(lines):
        m = _SECTION_RE.match(line)
        if m:
            section = m.group(1).strip()
            if section == "main" and main_at is None:
                main_at = i
            continue
        if section == "main" and key_re.match(line):
            lines[i] = f"{key} = {value}"
            return "\n".join(lines) + "\n"

    if main_at is None:
        lines = ["[main]", f"{key} = {value}", *([""] if lines else []), *lines]
    else:
        lines.insert(main_at + 1, f"{key} = {value}")
    return "\n".join(lines) + "\n"


class PuppetProvisioner(Provisioner):
    name = "puppet"
    package_names = ("puppet",)
    services = ("puppet",)

    @property
    def certname(self) -> str:
        return str(self.config.options.get("certname") or socket.getfqdn())

    @property
    def private_key_path(self) -> Path:
        return self.target_path(f"{SSL_DIR}/private_keys/{self.certname}.pem")

    @property
    def public_key_path(self) -> Path:
        return self.target_path(f"{SSL_DIR}/public_keys/{self.certname}.pem")

    def update_configuration(self) -> bool:
        master = self.config.master
        if not master:
            logger.info("No master configured; keeping puppet defaults")
            return True

        p = self.target_path(PUPPET_CONF)
        if self.dry_run:
            logger.info("Would set server=%s in %s", master, str(p))
            return True

        try:
            text = p.read_text(encoding="utf-8") if p.exists() else ""
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(set_main_option(text, "server", master), encoding="utf-8")
        except OSError as e:
            logger.error("Could not update %s: %s", str(p), e)
            return False
        logger.info("Configured puppet server %s", master)
        return True

    def apply_client_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        return self.run_in_target(
            [
                "puppet",
                "agent",
                "--onetime",
                "--no-daemonize",
                "--detailed-exitcodes",
                "--waitforcert",
                str(self.config.auth_time_out),
            ],
            ok_codes=OK_CODES,
            stdout=stdout,
            stderr=stderr,
        )

    def apply_masterless_mode(self, stdout: Optional[TextIO], stderr: Optional[TextIO]) -> bool:
        wd = self.config.work_dir("target")
        return self.run_in_target(
            [
                "puppet",
                "apply",
                "--detailed-exitcodes",
                "--modulepath",
                str(wd / "modules"),
                str(wd / "manifests" / "site.pp"),
            ],
            ok_codes=OK_CODES,
            stdout=stdout,
            stderr=stderr,
        )
