"""Headless command-line entry point for CHARM.

``charm PACK`` loads a sound pack, starts the engine and runs the Qt event
loop until SIGINT/SIGTERM; ``charm --list`` prints the packs it can find.
Both ``python main.py`` and the installed ``charm`` script go through
``main()`` here.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional, Sequence

from PySide6.QtCore import QCoreApplication, QObject

from .audio.graph import CrossfadeLaw
from .audio.output import AudioOutput
from .config.app_config import AppPaths
from .config.runtime import CharmConfig, load_config
from .core.engine import Engine
from .core.errors import PackLoadError
from .core.models import Category
from .core.ticker import RefreshRate, TickDriver
from .monitor import SystemMonitor
from .packs import PackLoader, SoundPack, find_pack

logger = logging.getLogger(__name__)

__all__ = ["CharmApp", "configure_logging", "main", "resolve_config", "run"]

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    logging.captureWarnings(True)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="charm",
        description="Play a sound pack that follows CPU, memory and disk activity",
    )
    parser.add_argument("pack", nargs="?", help="Name of the sound pack to play")
    parser.add_argument("--list", action="store_true", help="List available sound packs and exit")
    parser.add_argument("--packs-dir", type=str, default=None, help="Directory containing sound packs")
    parser.add_argument("--config", type=str, default=None, help="YAML config file (default: ~/.config/charm/config.yaml)")
    parser.add_argument(
        "--refresh",
        choices=[r.label for r in RefreshRate],
        default=None,
        help="Metric refresh rate (default: from config, normally 250 ms)",
    )
    parser.add_argument("--volume", type=float, default=None, help="Master volume between 0 and 1")
    parser.add_argument("--no-cpu", action="store_true", help="Do not monitor CPU load")
    parser.add_argument("--no-ram", action="store_true", help="Do not monitor memory usage")
    parser.add_argument("--no-disk", action="store_true", help="Do not monitor disk activity")
    parser.add_argument(
        "--log-level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=None,
        help="Logging level (default: from config, normally INFO)",
    )
    return parser


def _parse_cli_args(argv: Sequence[str]) -> tuple[argparse.Namespace, list[str]]:
    parser = _build_arg_parser()
    args, qt_args = parser.parse_known_args(list(argv[1:]))
    qt_argv = [argv[0] if argv else "charm", *qt_args]
    return args, qt_argv


def resolve_config(args: argparse.Namespace, paths: AppPaths) -> CharmConfig:
    """Merge the YAML config with command-line overrides."""
    cfg = load_config(args.config or paths.config_file)
    if args.refresh is not None:
        cfg.refresh_ms = RefreshRate.parse(args.refresh).interval_ms
    if args.volume is not None:
        cfg.master_volume = args.volume
    if args.no_cpu:
        cfg.cpu_enabled = False
    if args.no_ram:
        cfg.ram_enabled = False
    if args.no_disk:
        cfg.disk_enabled = False
    if args.packs_dir:
        cfg.packs_dir = args.packs_dir
    if args.log_level:
        cfg.log_level = args.log_level
    return cfg.sanitized()


def _output_device(value: Optional[str]) -> Optional[int | str]:
    if value is None:
        return None
    return int(value) if value.isdigit() else value


def _print_packs(packs: List[SoundPack], packs_dir: Path) -> None:
    if not packs:
        print(f"No sound packs found in {packs_dir}")
        return
    print(f"Sound packs in {packs_dir}:")
    for pack in packs:
        print(f"  {pack.name:<24} {pack.description()}")


class CharmApp(QObject):
    """
    One headless monitoring session: monitor, engine and tick driver.

    Shutdown order is ticker first, engine second, so no tick can reach a
    torn-down engine.
    """

    def __init__(
        self,
        config: CharmConfig,
        *,
        monitor: Optional[SystemMonitor] = None,
        output: Optional[AudioOutput] = None,
        engine: Optional[Engine] = None,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self.config = config
        excluded = [c for c, on in self._category_flags() if not on]
        self.monitor = monitor or SystemMonitor(exclude=excluded)
        self.output = output or AudioOutput(
            samplerate=config.samplerate,
            blocksize=config.blocksize,
            device=_output_device(config.output_device),
        )
        self.engine = engine or Engine(
            self.output,
            core_count=self.monitor.core_count(),
            crossfade_law=CrossfadeLaw.parse(config.crossfade_law),
            master_volume=config.master_volume,
        )
        self.ticker: Optional[TickDriver] = None

    def _category_flags(self) -> list[tuple[Category, bool]]:
        cfg = self.config
        return [
            (Category.CPU, cfg.cpu_enabled),
            (Category.RAM, cfg.ram_enabled),
            (Category.DISK, cfg.disk_enabled),
        ]

    def start(self, pack: SoundPack) -> None:
        """Load ``pack``, open the output and start ticking."""
        for category, enabled in self._category_flags():
            self.engine.set_enabled(category, enabled)
        if not self.engine.load(pack):
            raise PackLoadError(f"Loading {pack.name} was interrupted")
        self.engine.start()
        self.ticker = TickDriver(self.monitor, self.engine.update, self.config.refresh_ms, parent=self)
        self.ticker.start()
        logger.info("Playing %s (refresh %d ms)", pack.name, self.config.refresh_ms)

    def switch_pack(self, pack: SoundPack) -> bool:
        return self.engine.load(pack)

    def shutdown(self) -> None:
        if self.ticker is not None:
            self.ticker.stop()
            self.ticker = None
        self.engine.stop()


def main(argv: list[str] | None = None) -> None:
    raw_argv = argv if argv is not None else sys.argv
    raise SystemExit(run(raw_argv))


def run(argv: Sequence[str]) -> int:
    args, qt_argv = _parse_cli_args(argv)
    paths = AppPaths()
    config = resolve_config(args, paths)
    configure_logging(config.log_level)

    packs_dir = paths.packs_dir(config.packs_dir)
    packs = PackLoader(packs_dir).scan_packs()

    if args.list or not args.pack:
        _print_packs(packs, packs_dir)
        return 0 if args.list else 1

    pack = find_pack(packs, args.pack)
    if pack is None:
        print(f"Sound pack {args.pack!r} not found.", file=sys.stderr)
        _print_packs(packs, packs_dir)
        return 1

    qt_app = QCoreApplication.instance() or QCoreApplication(qt_argv)
    session = CharmApp(config)
    try:
        session.start(pack)
    except Exception as exc:
        logger.error("Failed to start %s: %s", pack.name, exc)
        session.shutdown()
        return 1

    def _request_quit(signum, frame) -> None:
        logger.info("Received signal %d; shutting down", signum)
        qt_app.quit()

    signal.signal(signal.SIGINT, _request_quit)
    signal.signal(signal.SIGTERM, _request_quit)

    print(f"Playing {pack.name} ({pack.description()}). Press Ctrl+C to stop.")
    try:
        return int(qt_app.exec())
    finally:
        session.shutdown()


if __name__ == "__main__":
    main()
