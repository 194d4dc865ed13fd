from __future__ import annotations

from typing import Dict, Type

from ..configuration import Configuration
from .base import Provisioner, ProvisionerStateError, State
from .puppet import PuppetProvisioner
from .salt import SaltProvisioner

BACKENDS: Dict[str, Type[Provisioner]] = {
    SaltProvisioner.name: SaltProvisioner,
    PuppetProvisioner.name: PuppetProvisioner,
}


class BackendNotFound(LookupError):
    pass


def provisioner_class(backend: str) -> Type[Provisioner]:
    """Return the provisioner class for a backend id ("salt", "puppet")."""

    try:
        return BACKENDS[str(backend).strip().lower()]
    except KeyError:
        known = ", ".join(sorted(BACKENDS))
        raise BackendNotFound(f"Provisioner for '{backend}' not found (known: {known})") from None


def provisioner_for(config: Configuration, *, dry_run: bool = False) -> Provisioner:
    return provisioner_class(config.type)(config, dry_run=dry_run)


__all__ = [
    "BACKENDS",
    "BackendNotFound",
    "Provisioner",
    "ProvisionerStateError",
    "PuppetProvisioner",
    "SaltProvisioner",
    "State",
    "provisioner_class",
    "provisioner_for",
]
