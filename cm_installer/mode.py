from __future__ import annotations

from enum import Enum
from typing import Optional


class Mode(str, Enum):
    CLIENT = "client"
    MASTERLESS = "masterless"


def resolve_mode(master: Optional[str], config_url: Optional[str]) -> Mode:
    """Decide how the target reaches its configuration.

    * master given -> CLIENT (wins over config_url)
    * neither given -> CLIENT
    * only config_url -> MASTERLESS
    """

    if master:
        return Mode.CLIENT
    if not config_url:
        return Mode.CLIENT
    return Mode.MASTERLESS
