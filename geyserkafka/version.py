"""Version information reported by the service."""

from __future__ import annotations

import json
import platform
from dataclasses import asdict, dataclass

LABEL_NAMES = ("buildts", "git", "package", "proto", "rustc", "solana", "version")


@dataclass(frozen=True)
class Version:
    package: str
    version: str
    proto: str
    solana: str
    git: str
    rustc: str
    buildts: str

    def as_dict(self) -> dict[str, str]:
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.as_dict(), separators=(",", ":"))

    def label_values(self) -> tuple[str, ...]:
        """Values in the order of ``LABEL_NAMES``."""
        return tuple(getattr(self, name) for name in LABEL_NAMES)


VERSION = Version(
    package="geyserkafka",
    version="4.0.0",
    proto="6.0.0",
    solana="unknown",
    git="unknown",
    rustc=platform.python_version(),
    buildts="",
)