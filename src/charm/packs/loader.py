"""
Discovery and parsing of sound pack directories.

A pack is a directory holding a ``prefs.ini`` with a ``[soundpack]`` section
and the audio assets it refers to by convention (``CPU``, ``RAM`` and ``disk``
base names, with ``_A``/``_B`` suffixes for fade pairs).
"""

from __future__ import annotations

import configparser
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from ..core.errors import PackLoadError
from ..core.models import Category, SoundMode
from .models import DEFAULT_SLIDE_INTERVAL, ChannelSounds, SoundPack

logger = logging.getLogger(__name__)

__all__ = ["PackLoader", "find_pack", "resolve_sounds", "SOUND_EXTENSIONS"]

PREFS_FILE = "prefs.ini"
SECTION = "soundpack"
SOUND_EXTENSIONS = ("ogg", "wav", "flac", "mp3")

_BASE_NAMES = {Category.CPU: "CPU", Category.RAM: "RAM", Category.DISK: "disk"}
_MODE_KEYS = {Category.CPU: "CPUSoundMode", Category.RAM: "RAMSoundMode", Category.DISK: "DiskSoundMode"}


def _first_existing(candidates: Iterable[Path]) -> Optional[Path]:
    for path in candidates:
        if path.is_file():
            return path
    return None


def resolve_sounds(pack_dir: Path, base_name: str, mode: SoundMode) -> ChannelSounds:
    """Find the assets for ``base_name`` in ``pack_dir`` according to ``mode``."""
    if mode is SoundMode.DISABLED:
        return ChannelSounds.none()
    lower = base_name.lower()
    if mode is SoundMode.FADE:
        for ext in SOUND_EXTENSIONS:
            for idle_name, active_name in ((f"{base_name}_A", f"{base_name}_B"), (f"{lower}_a", f"{lower}_b")):
                idle = pack_dir / f"{idle_name}.{ext}"
                active = pack_dir / f"{active_name}.{ext}"
                if idle.is_file() and active.is_file():
                    return ChannelSounds.pair(idle, active)
    for ext in SOUND_EXTENSIONS:
        single = _first_existing((pack_dir / f"{base_name}.{ext}", pack_dir / f"{lower}.{ext}"))
        if single is not None:
            return ChannelSounds.single(single)
    return ChannelSounds.none()


def _get_int(section: configparser.SectionProxy, key: str) -> Optional[int]:
    raw = section.get(key)
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", key, raw)
        return None


def _get_float(section: configparser.SectionProxy, key: str) -> Optional[float]:
    raw = section.get(key)
    if raw is None:
        return None
    try:
        return float(raw.strip())
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", key, raw)
        return None


class PackLoader:
    """Loads :class:`SoundPack` objects from a packs directory."""

    def __init__(self, packs_directory: str | Path) -> None:
        self.packs_directory = Path(packs_directory).expanduser()

    def scan_packs(self) -> List[SoundPack]:
        """Return every loadable pack, sorted by name; broken packs are logged and skipped."""
        if not self.packs_directory.is_dir():
            logger.debug("Packs directory %s does not exist", self.packs_directory)
            return []
        packs: List[SoundPack] = []
        for entry in sorted(self.packs_directory.iterdir()):
            if not entry.is_dir():
                continue
            try:
                packs.append(self.load_pack(entry))
            except PackLoadError as exc:
                logger.warning("Failed to load pack at %s: %s", entry, exc)
        return packs

    def load_pack(self, pack_dir: str | Path) -> SoundPack:
        directory = Path(pack_dir)
        prefs = directory / PREFS_FILE
        parser = configparser.ConfigParser(strict=False, interpolation=None)
        parser.optionxform = str  # type: ignore[assignment,method-assign]
        try:
            read = parser.read(prefs, encoding="utf-8")
        except (configparser.Error, UnicodeDecodeError) as exc:
            raise PackLoadError(f"Config parse error in {prefs}: {exc}") from exc
        if not read:
            raise PackLoadError(f"Missing {PREFS_FILE} in {directory}")
        if not parser.has_section(SECTION):
            raise PackLoadError(f"Missing [{SECTION}] section in {prefs}")
        section = parser[SECTION]

        modes = {}
        sounds = {}
        for category in Category:
            base = _BASE_NAMES[category]
            raw_mode = _get_int(section, _MODE_KEYS[category])
            mode = SoundMode.VOLUME if raw_mode is None else SoundMode.from_int(raw_mode)
            resolved = resolve_sounds(directory, base, mode)
            if raw_mode is None and not resolved.has_sounds:
                mode = SoundMode.DISABLED
            modes[category] = mode
            sounds[category] = resolved

        slide = _get_int(section, "SlideInterval")
        max_gain = _get_float(section, "MaxVolume")
        pack = SoundPack(
            name=directory.name or "Unknown",
            directory=directory,
            use_averages=(_get_int(section, "UseAverages") or 0) != 0,
            slide_interval=DEFAULT_SLIDE_INTERVAL if slide is None else max(0, slide),
            frequency_fluctuation=(_get_int(section, "FrequencyFluctuation") or 0) != 0,
            max_gain=1.0 if max_gain is None else min(1.0, max(0.0, max_gain)),
            modes=modes,
            sounds=sounds,
        )
        logger.debug("Loaded pack %s (%s)", pack.name, pack.description())
        return pack


def find_pack(packs: Iterable[SoundPack], name: str) -> Optional[SoundPack]:
    """Case-insensitive lookup by pack name."""
    wanted = name.strip().lower()
    for pack in packs:
        if pack.name.lower() == wanted:
            return pack
    return None
