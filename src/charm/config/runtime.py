"""Runtime configuration for a headless CHARM session."""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping, Optional

import yaml

from ..core.ticker import MAX_INTERVAL_MS, MIN_INTERVAL_MS, RefreshRate

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
_CROSSFADE_LAWS = ("linear", "equal_power")


@dataclass(slots=True)
class CharmConfig:
    """
    Tuning knobs for the tick cadence, the output stream and the pack search.

    The defaults match the "normal" refresh preset and a 48 kHz stereo stream.
    """

    refresh_ms: int = RefreshRate.NORMAL.interval_ms
    master_volume: float = 1.0

    # Output stream
    samplerate: int = 48_000
    blocksize: int = 1024
    output_device: Optional[str] = None
    crossfade_law: str = "linear"

    cpu_enabled: bool = True
    ram_enabled: bool = True
    disk_enabled: bool = True

    packs_dir: Optional[str] = None
    log_level: str = "INFO"

    def sanitized(self) -> CharmConfig:
        """Return a copy with derived limits applied."""
        law = str(self.crossfade_law).strip().lower().replace("-", "_")
        if law not in _CROSSFADE_LAWS:
            law = "linear"
        level = str(self.log_level).strip().upper()
        if level not in _LOG_LEVELS:
            level = "INFO"
        device = self.output_device
        if device is not None:
            device = str(device).strip() or None
        return CharmConfig(
            refresh_ms=max(MIN_INTERVAL_MS, min(MAX_INTERVAL_MS, int(self.refresh_ms))),
            master_volume=max(0.0, min(1.0, float(self.master_volume))),
            samplerate=max(8_000, int(self.samplerate)),
            blocksize=max(64, int(self.blocksize)),
            output_device=device,
            crossfade_law=law,
            cpu_enabled=bool(self.cpu_enabled),
            ram_enabled=bool(self.ram_enabled),
            disk_enabled=bool(self.disk_enabled),
            packs_dir=str(self.packs_dir) if self.packs_dir else None,
            log_level=level,
        )


def _recognized_fields() -> set[str]:
    """Return the dataclass field names accepted by :class:`CharmConfig`."""
    return {f.name for f in fields(CharmConfig)}


def _normalize_mapping(data: Mapping[str, Any]) -> MutableMapping[str, Any]:
    """Flatten the optional nested ``audio`` block."""
    if "audio" in data and isinstance(data["audio"], Mapping):
        merged: MutableMapping[str, Any] = {}
        for key, value in data.items():
            if key == "audio":
                merged.update(value)
            else:
                merged[key] = value
        return merged
    return dict(data)


def config_from_mapping(data: Mapping[str, Any] | None) -> CharmConfig:
    """Build :class:`CharmConfig` from ``data`` (ignoring unknown keys)."""
    if not data:
        return CharmConfig()
    normalized = _normalize_mapping(data)
    known = _recognized_fields()
    payload = {key: normalized[key] for key in normalized.keys() & known}
    return CharmConfig(**payload).sanitized()


def load_config(path: str | Path | None) -> CharmConfig:
    """
    Load configuration from ``path``.

    Missing files fall back to default :class:`CharmConfig`.
    """
    if path is None:
        return CharmConfig()
    cfg_path = Path(path).expanduser()
    if not cfg_path.exists():
        return CharmConfig()
    with cfg_path.open("r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh) or {}
    if not isinstance(raw, Mapping):
        raise ValueError(f"Expected mapping in {cfg_path}, got {type(raw).__name__}")
    return config_from_mapping(raw)


__all__ = ["CharmConfig", "config_from_mapping", "load_config"]
