"""Default application paths (packs directory and config file)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

__all__ = ["AppPaths"]

APP_NAME = "charm"


@dataclass
class AppPaths:
    """
    Where CHARM looks for sound packs and its config file.

    ``CHARM_PACKS_DIR`` overrides the packs search and ``CHARM_CONFIG`` the
    config file location. Without overrides, packs are searched in
    ``./packs``, then the per-user data directory, then the system one.
    """

    cwd: Path = field(default_factory=Path.cwd)
    home: Path = field(default_factory=Path.home)
    config_file: Path = field(init=False)
    pack_candidates: List[Path] = field(init=False)

    def __post_init__(self) -> None:
        env_config = os.environ.get("CHARM_CONFIG")
        if env_config:
            self.config_file = Path(env_config).expanduser()
        else:
            self.config_file = self.home / ".config" / APP_NAME / "config.yaml"

        candidates: List[Path] = []
        env_packs = os.environ.get("CHARM_PACKS_DIR")
        if env_packs:
            candidates.append(Path(env_packs).expanduser())
        candidates.extend(
            [
                self.cwd / "packs",
                self.home / ".local" / "share" / APP_NAME / "packs",
                Path("/usr/share") / APP_NAME / "packs",
            ]
        )
        self.pack_candidates = candidates

    def packs_dir(self, override: Optional[str | Path] = None) -> Path:
        """First existing packs directory; ``override`` wins when given."""
        if override:
            return Path(override).expanduser()
        for candidate in self.pack_candidates:
            if candidate.is_dir():
                return candidate
        return self.pack_candidates[0]
