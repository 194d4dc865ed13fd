from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .config_store import load_document, save_document
from .lib.env import PATHS
from .lib.workdir import Scope, WorkDir
from .mode import Mode

logger = logging.getLogger(__name__)

DEFAULT_AUTH_ATTEMPTS = 3
DEFAULT_AUTH_TIME_OUT = 15

# Keys computed by Configuration itself; ignored when read back from a file.
DERIVED_KEYS = {"mode", "work_dir"}

KNOWN_KEYS = {
    "type",
    "master",
    "auth_attempts",
    "auth_time_out",
    "keys_url",
    "definitions_url",
    "config_url",
    "enable_services",
}

_TRUE = {"true", "yes", "on", "1"}
_FALSE = {"false", "no", "off", "0"}


class ConfigurationError(ValueError):
    pass


def _as_int(key: str, value: Any, *, minimum: int) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")
    try:
        n = int(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e
    if n < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {n}")
    return n


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in _TRUE:
        return True
    if s in _FALSE:
        return False
    raise ConfigurationError(f"{key} must be a boolean, got {value!r}")


def _as_opt_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s or None


@dataclass(frozen=True)
class Configuration:
    """Settings for bringing the target under a configuration management system."""

    type: str
    master: Optional[str] = None
    auth_attempts: int = DEFAULT_AUTH_ATTEMPTS
    auth_time_out: int = DEFAULT_AUTH_TIME_OUT
    keys_url: Optional[str] = None
    definitions_url: Optional[str] = None
    enable_services: bool = True
    options: Mapping[str, Any] = field(default_factory=dict, hash=False)
    target_root: str = PATHS.target_root
    _work_dir: WorkDir = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.type or not str(self.type).strip():
            raise ConfigurationError("type is required (e.g. 'salt' or 'puppet')")
        object.__setattr__(self, "type", str(self.type).strip().lower())
        object.__setattr__(self, "master", _as_opt_str(self.master))
        object.__setattr__(self, "keys_url", _as_opt_str(self.keys_url))
        object.__setattr__(self, "definitions_url", _as_opt_str(self.definitions_url))
        object.__setattr__(self, "auth_attempts", _as_int("auth_attempts", self.auth_attempts, minimum=1))
        object.__setattr__(self, "auth_time_out", _as_int("auth_time_out", self.auth_time_out, minimum=0))
        object.__setattr__(self, "enable_services", _as_bool("enable_services", self.enable_services))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        object.__setattr__(self, "_work_dir", WorkDir(target_root=self.target_root))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any], *, target_root: str = PATHS.target_root) -> "Configuration":
        """Build a configuration from profile data (string keys)."""

        data = {str(k): v for k, v in raw.items()}
        if data.get("definitions_url") is None and data.get("config_url") is not None:
            data["definitions_url"] = data["config_url"]

        options = {k: v for k, v in data.items() if k not in KNOWN_KEYS | DERIVED_KEYS}

        def pick(key: str, default: Any) -> Any:
            value = data.get(key)
            return default if value is None else value

        return cls(
            type=data.get("type") or "",
            master=data.get("master"),
            auth_attempts=pick("auth_attempts", DEFAULT_AUTH_ATTEMPTS),
            auth_time_out=pick("auth_time_out", DEFAULT_AUTH_TIME_OUT),
            keys_url=data.get("keys_url"),
            definitions_url=data.get("definitions_url"),
            enable_services=pick("enable_services", True),
            options=options,
            target_root=target_root,
        )

    @classmethod
    def load(cls, path: str | Path = PATHS.config_default, *, target_root: str = PATHS.target_root) -> Optional["Configuration"]:
        p = Path(path)
        if not p.exists():
            return None
        return cls.from_mapping(load_document(p), target_root=target_root)

    @property
    def mode(self) -> Mode:
        return Mode.CLIENT if self.master else Mode.MASTERLESS

    def work_dir(self, scope: Scope = "local") -> Path:
        return self._work_dir.path(scope)

    def ensure_work_dir(self) -> Path:
        return self._work_dir.ensure()

    def to_dict(self) -> Dict[str, Any]:
        values: Dict[str, Any] = {
            "type": self.type,
            "mode": self.mode.value,
            "master": self.master,
            "auth_attempts": self.auth_attempts,
            "auth_time_out": self.auth_time_out,
            "keys_url": self.keys_url,
            "definitions_url": self.definitions_url,
            "work_dir": str(self.work_dir("target")),
            "enable_services": self.enable_services,
        }
        values.update(self.options)
        return {k: v for k, v in values.items() if v is not None}

    def to_secure_dict(self) -> Dict[str, Any]:
        """Like to_dict() but without any *_url entry (may carry credentials)."""

        return {k: v for k, v in self.to_dict().items() if not k.endswith("_url")}

    def save(self, path: str | Path = PATHS.config_default) -> None:
        # Installer-side copy only; it never reaches the target.
        save_document(path, self.to_dict())

    def secure_save(self, path: str | Path = PATHS.config_default) -> Path:
        dst = Path(self.target_root) / str(path).lstrip("/")
        save_document(dst, self.to_secure_dict())
        return dst
