from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from .config_store import load_document
from .configuration import ConfigurationError
from .keys import KeysNotFetched
from .lib.env import PATHS
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .provisioners import BackendNotFound
from .session import import_profile

logger = logging.getLogger(__name__)


def run(
    *,
    profile_path: str,
    config_path: str = PATHS.config_default,
    log_path: str = DEFAULT_LOG_PATH,
    target_root: str = PATHS.target_root,
    dry_run: bool = False,
    verbose: bool = False,
) -> bool:
    """Provision the target from a profile document (YAML or JSON)."""

    configure_logging(log_path=log_path, level=logging.DEBUG if verbose else logging.INFO)

    profile = load_document(profile_path)
    # Profiles may wrap the settings in a configuration_management section.
    section = profile.get("configuration_management")
    if isinstance(section, dict):
        profile = section

    session = import_profile(profile, config_path=config_path, target_root=target_root, dry_run=dry_run)
    logger.info("Packages required: %s", session.packages())
    return session.write(sys.stdout, sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    p = argparse.ArgumentParser(prog="cm-installer")
    p.add_argument("--profile", required=True, help="Profile with configuration management settings (yaml|json)")
    p.add_argument("--config", default=PATHS.config_default, help="Where to save the resolved configuration")
    p.add_argument("--log", default=DEFAULT_LOG_PATH, help="Path to installer log")
    p.add_argument("--target-root", default=PATHS.target_root, help="Mount point of the system being installed")
    p.add_argument("--dry-run", action="store_true", help="Log target commands instead of running them")
    p.add_argument("--verbose", action="store_true", help="Debug logging (includes command output)")

    args = p.parse_args(argv)

    try:
        ok = run(
            profile_path=args.profile,
            config_path=args.config,
            log_path=args.log,
            target_root=args.target_root,
            dry_run=args.dry_run,
            verbose=args.verbose,
        )
    except (ConfigurationError, BackendNotFound, KeysNotFetched) as e:
        logger.error("%s", e)
        return 2

    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
