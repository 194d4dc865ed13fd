from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, TextIO

from .configuration import Configuration
from .lib.env import PATHS
from .provisioners import Provisioner, provisioner_for

logger = logging.getLogger(__name__)


@dataclass
class ProvisioningSession:
    """Handle returned by import_profile() and consumed by write()."""

    config: Configuration
    provisioner: Provisioner
    config_path: str = PATHS.config_default

    def packages(self) -> Dict[str, List[str]]:
        return self.provisioner.packages()

    def write(self, stdout: Optional[TextIO] = None, stderr: Optional[TextIO] = None) -> bool:
        """Prepare and run the provisioner.

        On success the configuration, without URL entries, is also saved on
        the target system.
        """

        self.provisioner.prepare()
        ok = self.provisioner.run(stdout, stderr)
        if ok:
            dst = self.config.secure_save(self.config_path)
            logger.info("Saved configuration to target: %s", str(dst))
        return ok


def import_profile(
    profile: Mapping[str, Any],
    *,
    config_path: str | Path = PATHS.config_default,
    target_root: str = PATHS.target_root,
    dry_run: bool = False,
) -> ProvisioningSession:
    """Build configuration and provisioner from profile data.

    Raises ConfigurationError / BackendNotFound for unusable profiles.
    """

    config = Configuration.from_mapping(profile, target_root=target_root)
    provisioner = provisioner_for(config, dry_run=dry_run)
    config.save(config_path)
    return ProvisioningSession(config=config, provisioner=provisioner, config_path=str(config_path))
