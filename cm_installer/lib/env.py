from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Paths:
    target_root: str = "/mnt"
    var_dir: str = "/var/lib/cm-installer"
    config_default: str = "/var/lib/cm-installer/configuration_management.yml"
    log_default: str = "/var/log/cm-installer.log"
    # Relative to the target root.
    package_lock: str = "var/run/zypp.pid"


PATHS = Paths()
