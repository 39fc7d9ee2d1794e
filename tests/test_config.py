from __future__ import annotations

import unittest
from pathlib import Path

import pytest

from charm.config import AppPaths, CharmConfig, config_from_mapping, load_config


class CharmConfigMappingTest(unittest.TestCase):
    def test_defaults(self):
        cfg = CharmConfig()
        self.assertEqual(cfg.refresh_ms, 250)
        self.assertEqual(cfg.samplerate, 48_000)
        self.assertEqual(cfg.crossfade_law, "linear")
        self.assertTrue(cfg.cpu_enabled and cfg.ram_enabled and cfg.disk_enabled)

    def test_mapping_flattens_audio_block_and_ignores_unknown_keys(self):
        cfg = config_from_mapping(
            {
                "refresh_ms": 500,
                "audio": {"samplerate": 44_100, "blocksize": 512, "crossfade_law": "Equal-Power"},
                "disk_enabled": False,
                "theme": "dark",
            }
        )
        self.assertEqual(cfg.refresh_ms, 500)
        self.assertEqual(cfg.samplerate, 44_100)
        self.assertEqual(cfg.blocksize, 512)
        self.assertEqual(cfg.crossfade_law, "equal_power")
        self.assertFalse(cfg.disk_enabled)

    def test_empty_mapping_gives_defaults(self):
        self.assertEqual(config_from_mapping(None), CharmConfig())
        self.assertEqual(config_from_mapping({}), CharmConfig())

    def test_sanitized_clamps_out_of_range_values(self):
        cfg = CharmConfig(
            refresh_ms=5,
            master_volume=4.0,
            samplerate=100,
            blocksize=1,
            output_device="  ",
            crossfade_law="cubic",
            log_level="chatty",
        ).sanitized()
        self.assertEqual(cfg.refresh_ms, 100)
        self.assertEqual(cfg.master_volume, 1.0)
        self.assertEqual(cfg.samplerate, 8_000)
        self.assertEqual(cfg.blocksize, 64)
        self.assertIsNone(cfg.output_device)
        self.assertEqual(cfg.crossfade_law, "linear")
        self.assertEqual(cfg.log_level, "INFO")
        self.assertEqual(CharmConfig(refresh_ms=60_000).sanitized().refresh_ms, 1000)


def test_load_config_reads_yaml(tmp_path: Path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("master_volume: 0.4\nlog_level: debug\naudio:\n  output_device: pulse\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.master_volume == pytest.approx(0.4)
    assert cfg.log_level == "DEBUG"
    assert cfg.output_device == "pulse"


def test_load_config_missing_or_empty_file_gives_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.yaml") == CharmConfig()
    assert load_config(None) == CharmConfig()
    empty = tmp_path / "empty.yaml"
    empty.write_text("", encoding="utf-8")
    assert load_config(empty) == CharmConfig()


def test_load_config_rejects_non_mapping(tmp_path: Path) -> None:
    path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_app_paths_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("CHARM_CONFIG", raising=False)
    monkeypatch.delenv("CHARM_PACKS_DIR", raising=False)
    paths = AppPaths(cwd=tmp_path / "work", home=tmp_path / "home")
    assert paths.config_file == tmp_path / "home" / ".config" / "charm" / "config.yaml"
    assert paths.pack_candidates[0] == tmp_path / "work" / "packs"
    # nothing exists yet, so the first candidate is reported
    assert paths.packs_dir() == tmp_path / "work" / "packs"

    user_packs = tmp_path / "home" / ".local" / "share" / "charm" / "packs"
    user_packs.mkdir(parents=True)
    assert paths.packs_dir() == user_packs
    assert paths.packs_dir("/opt/packs") == Path("/opt/packs")


def test_app_paths_environment_overrides(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("CHARM_CONFIG", str(tmp_path / "custom.yaml"))
    monkeypatch.setenv("CHARM_PACKS_DIR", str(tmp_path / "mine"))
    paths = AppPaths(cwd=tmp_path, home=tmp_path)
    assert paths.config_file == tmp_path / "custom.yaml"
    assert paths.pack_candidates[0] == tmp_path / "mine"
