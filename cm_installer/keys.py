from __future__ import annotations

import logging
import socket
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from .lib.transfer import get_file

logger = logging.getLogger(__name__)

DEFAULT_ID = "default"
PRIVATE_KEY_EXT = ".key"
PUBLIC_KEY_EXT = ".pub"
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
SYS_CLASS_NET = "/sys/class/net"


class KeysNotFetched(RuntimeError):
    pass


def _mac_addresses(sys_class_net: str = SYS_CLASS_NET) -> List[str]:
    out: List[str] = []
    base = Path(sys_class_net)
    if not base.is_dir():
        return out
    for iface in sorted(base.iterdir()):
        if iface.name == "lo":
            continue
        try:
            mac = (iface / "address").read_text(encoding="utf-8").strip()
        except OSError:
            continue
        if mac and mac != "00:00:00:00:00:00" and mac not in out:
            out.append(mac)
    return out


def candidate_ids(*, hostname: Optional[str] = None, macs: Optional[Iterable[str]] = None) -> List[str]:
    """Key ids to look for, from most to least specific."""

    ids: List[str] = []
    host = hostname if hostname is not None else socket.gethostname()
    if host:
        ids.append(host)
    for mac in macs if macs is not None else _mac_addresses():
        if mac not in ids:
            ids.append(mac)
    ids.append(DEFAULT_ID)
    return ids


class KeyFetcher:
    """Retrieve an authentication key pair published under a base URL.

    The bundle holds one pair per host as `<id>.key` / `<id>.pub`.
    """

    def __init__(self, keys_url: str, *, ids: Optional[Sequence[str]] = None) -> None:
        self.keys_url = keys_url.rstrip("/")
        self.ids = list(ids) if ids is not None else candidate_ids()

    def _url(self, key_id: str, ext: str) -> str:
        return f"{self.keys_url}/{key_id}{ext}"

    def fetch_to(self, private_key_path: str | Path, public_key_path: str | Path) -> bool:
        private = Path(private_key_path)
        public = Path(public_key_path)

        for key_id in self.ids:
            if not get_file(self._url(key_id, PRIVATE_KEY_EXT), private, mode=PRIVATE_KEY_MODE):
                continue
            if not get_file(self._url(key_id, PUBLIC_KEY_EXT), public, mode=PUBLIC_KEY_MODE):
                logger.warning("Public key for '%s' missing; discarding private key", key_id)
                private.unlink()
                continue

            logger.info("Installed authentication keys for '%s'", key_id)
            return True

        logger.error("No authentication keys found at %s (tried %s)", self.keys_url, ", ".join(self.ids))
        return False


def fetch_keys(keys_url: str, private_key_path: str | Path, public_key_path: str | Path) -> bool:
    return KeyFetcher(keys_url).fetch_to(private_key_path, public_key_path)
