#!/usr/bin/env python3
"""Entry point: wire settings, sensor, store and UI into the control loop."""
from __future__ import annotations

import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, Optional

from .config.settings import CONFIG_PATH, Settings
from .monitor import TruckLoadMonitor
from .services.logging import setup_logging
from .services.scale import BackendUnavailable, ScaleSensor, select_backend
from .services.storage import JsonFileStore
from .ui.console import ConsoleUI


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="truckscale", description="Truck load counter and scale calibration")
    parser.add_argument("--console", action="store_true", help="run without the Tk touch screen")
    parser.add_argument("--config", type=Path, default=CONFIG_PATH, help="settings file (JSON)")
    parser.add_argument("--debug", action="store_true", help="log per-sample detail")
    return parser.parse_args(argv)


def _run_console(sensor: ScaleSensor, store: JsonFileStore, settings: Settings, logger: logging.Logger) -> int:
    ui = ConsoleUI()
    monitor = TruckLoadMonitor(
        sensor,
        store,
        ui,
        calibration_samples=settings.scale.calibration_samples,
        notice_s=settings.display.notice_s,
    )

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received signal %s, stopping", signum)
        monitor.stop()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)
    ui.start()
    monitor.run(settings.monitor.interval_s)
    return 0


def _run_touch(sensor: ScaleSensor, store: JsonFileStore, settings: Settings, logger: logging.Logger) -> Optional[int]:
    """Run the Tk screen; ``None`` means Tk is unusable here."""

    try:
        import tkinter as tk

        from .ui.touch import TouchScreen
    except ImportError:
        logger.warning("Tk not installed; falling back to console", exc_info=True)
        return None
    try:
        root = tk.Tk()
    except tk.TclError:
        logger.warning("No display available; falling back to console", exc_info=True)
        return None

    ui = TouchScreen(root, fullscreen=settings.display.fullscreen)
    monitor = TruckLoadMonitor(
        sensor,
        store,
        ui,
        calibration_samples=settings.scale.calibration_samples,
        notice_s=settings.display.notice_s,
    )

    def _handle_signal(signum, _frame) -> None:
        logger.info("Received signal %s, stopping", signum)
        root.quit()

    signal.signal(signal.SIGTERM, _handle_signal)
    signal.signal(signal.SIGINT, _handle_signal)
    monitor.start()
    try:
        ui.run(monitor.step, settings.monitor.interval_s)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        ui.close()
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    base_logger = setup_logging(logging.DEBUG if args.debug else logging.INFO)
    logger = base_logger.getChild("main")
    logger.info("Starting truck load monitor")

    settings = Settings.load(args.config)
    try:
        backend = select_backend(settings.scale, logger=base_logger.getChild("scale"))
    except BackendUnavailable as exc:
        logger.error("No weight sensor available: %s", exc)
        return 1
    sensor = ScaleSensor(
        backend,
        noise_epsilon=settings.scale.noise_epsilon,
        tare_samples=settings.scale.tare_samples,
    )
    store = JsonFileStore(settings.storage.path)

    try:
        if not args.console and settings.display.ui == "tk":
            result = _run_touch(sensor, store, settings, logger)
            if result is not None:
                return result
        return _run_console(sensor, store, settings, logger)
    finally:
        sensor.close()
        logger.info("Truck load monitor stopped")


if __name__ == "__main__":
    sys.exit(main())
