"""Line based console adapter for running without a display."""
from __future__ import annotations

import logging
import queue
import sys
import threading
from typing import Dict, Optional, TextIO

from ..domain import events
from ..domain.events import InputEvent
from .render import CalibrationView, IdleView, UserInterface, idle_rows

logger = logging.getLogger("truckscale.ui.console")

LINE_END = "\n"

IDLE_KEYS: Dict[str, InputEvent] = {
    "t": events.TARE,
    "s": events.STORE,
    "r": events.RESET,
    "c": events.BEGIN_CALIBRATION,
}

CALIBRATION_KEYS: Dict[str, InputEvent] = {
    ".": events.DECIMAL_POINT,
    "c": events.CLEAR,
    "e": events.ENTER,
    LINE_END: events.ENTER,
    "x": events.CANCEL,
}

HELP_IDLE = "[t]are [s]tore [r]eset [c]alibrate"
HELP_CALIBRATION = "digits . then Enter | [c]lear e[x]it"


def map_key(key: str, calibrating: bool) -> Optional[InputEvent]:
    """Translate one typed character into an event for the current mode."""

    if calibrating:
        if key.isdigit() and len(key) == 1:
            return InputEvent.digit(key)
        return CALIBRATION_KEYS.get(key if key == LINE_END else key.lower())
    return IDLE_KEYS.get(key.lower())


class ConsoleUI(UserInterface):
    """Print state changes to a stream, read key presses from stdin lines.

    Each typed character is one key press; the newline ending a line acts as
    Enter while calibrating. Keys are handed to the loop one per poll.
    """

    def __init__(self, *, stream: Optional[TextIO] = None, source: Optional[TextIO] = None) -> None:
        self._stream = stream or sys.stdout
        self._source = source
        self._keys: "queue.Queue[str]" = queue.Queue()
        self._calibrating = False
        self._last_line = ""
        self._reader: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._reader is not None:
            return
        self._reader = threading.Thread(target=self._read_loop, name="ConsoleInput", daemon=True)
        self._reader.start()
        self._write(HELP_IDLE)

    def _read_loop(self) -> None:
        source = self._source or sys.stdin
        for line in source:
            self.feed(line)
        logger.debug("Console input closed")

    def feed(self, text: str) -> None:
        for char in text.rstrip("\r\n"):
            self._keys.put(char)
        if text.endswith("\n"):
            self._keys.put(LINE_END)

    # ------------------------------------------------------------------
    def _write(self, line: str) -> None:
        if line == self._last_line:
            return
        self._last_line = line
        print(line, file=self._stream, flush=True)

    def render_idle(self, view: IdleView) -> None:
        if self._calibrating:
            self._calibrating = False
            self._write(HELP_IDLE)
        text = " | ".join(f"{label} {value}" for label, value in idle_rows(view))
        if view.notice:
            text = f"{text} | {view.notice}"
        self._write(text)

    def render_calibration(self, view: CalibrationView) -> None:
        if not self._calibrating:
            self._calibrating = True
            self._write(" ".join(view.prompts))
            self._write(HELP_CALIBRATION)
        text = f"> {view.entry}"
        if view.error:
            text = f"{text}  ({view.error})"
        self._write(text)

    def poll_event(self) -> Optional[InputEvent]:
        while True:
            try:
                key = self._keys.get_nowait()
            except queue.Empty:
                return None
            event = map_key(key, self._calibrating)
            if event is not None:
                return event
            logger.debug("Ignoring key %r", key)


__all__ = ["ConsoleUI", "map_key"]
