"""claimgraph.config — Settings read from the environment."""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

DEFAULT_IPFS_URL = "http://localhost:5001"
DEFAULT_TIMEOUT = 30.0

_TRUTHY = {"1", "true", "yes", "on"}


def _default_home() -> str:
    return os.path.join(os.path.expanduser("~"), ".claimgraph")


@dataclass
class Settings:
    home: str = field(default_factory=_default_home)
    identity_path: str = ""
    ipfs_url: str = DEFAULT_IPFS_URL
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "WARNING"
    log_json: bool = False

    def __post_init__(self):
        if not self.identity_path:
            self.identity_path = os.path.join(self.home, "identity.json")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        home = os.path.expanduser(env.get("CLAIMGRAPH_HOME", "")) or _default_home()
        try:
            timeout = float(env.get("CLAIMGRAPH_TIMEOUT", DEFAULT_TIMEOUT))
        except ValueError:
            raise ValueError(f"CLAIMGRAPH_TIMEOUT must be a number, got {env['CLAIMGRAPH_TIMEOUT']!r}") from None
        return cls(
            home=home,
            identity_path=os.path.expanduser(env.get("CLAIMGRAPH_IDENTITY", "")),
            ipfs_url=env.get("CLAIMGRAPH_IPFS_URL", DEFAULT_IPFS_URL).rstrip("/"),
            timeout=timeout,
            log_level=env.get("CLAIMGRAPH_LOG_LEVEL", "WARNING").upper(),
            log_json=env.get("CLAIMGRAPH_LOG_JSON", "").lower() in _TRUTHY,
        )


__all__ = ["Settings", "DEFAULT_IPFS_URL", "DEFAULT_TIMEOUT"]
