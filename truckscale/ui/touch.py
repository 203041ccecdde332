"""Tk touch screen: idle dashboard with action buttons and a calibration keypad."""
from __future__ import annotations

import logging
import tkinter as tk
from typing import Callable, Dict, Optional

from ..domain import events
from ..domain.events import InputEvent
from .render import CalibrationView, EventLatch, IdleView, UserInterface, idle_rows

LOGGER = logging.getLogger("truckscale.ui.touch")

COL_BG = "#000000"
COL_TEXT = "#FFFFFF"
COL_VALUE = "#00FF00"
COL_BUTTON = "#0000FF"
COL_DANGER = "#FF0000"
FONT = ("DejaVu Sans", 16)
FONT_BIG = ("DejaVu Sans", 20, "bold")

KEYPAD_ROWS = (
    ("1", "2", "3"),
    ("4", "5", "6"),
    ("7", "8", "9"),
    (".", "0", "E"),
)


def _key_event(label: str) -> InputEvent:
    if label == ".":
        return events.DECIMAL_POINT
    if label == "E":
        return events.ENTER
    return InputEvent.digit(label)


class TouchScreen(UserInterface):
    """Render views into two Tk frames and latch button presses."""

    def __init__(self, root: tk.Tk, *, fullscreen: bool = False) -> None:
        self.root = root
        self.latch = EventLatch()
        self._after_id: Optional[str] = None
        root.title("Truck Load Monitor")
        root.configure(bg=COL_BG)
        if fullscreen:
            root.attributes("-fullscreen", True)

        self._idle = tk.Frame(root, bg=COL_BG)
        self._calib = tk.Frame(root, bg=COL_BG)
        self._values: Dict[str, tk.StringVar] = {}
        self._notice = tk.StringVar(value="")
        self._entry = tk.StringVar(value="")
        self._error = tk.StringVar(value="")
        self._prompt = tk.StringVar(value="")
        self._build_idle()
        self._build_calibration()
        self._shown: Optional[tk.Frame] = None

    # ------------------------------------------------------------------
    def _button(self, parent: tk.Misc, text: str, event: InputEvent, *, color: str = COL_BUTTON) -> tk.Button:
        return tk.Button(
            parent,
            text=text,
            font=FONT,
            bg=color,
            fg=COL_TEXT,
            activebackground=color,
            command=lambda: self.latch.push(event),
        )

    def _build_idle(self) -> None:
        grid = tk.Frame(self._idle, bg=COL_BG)
        grid.pack(fill="x", padx=20, pady=20)
        for row, (label, _value) in enumerate(idle_rows(IdleView(0.0, 0, 0.0))):
            tk.Label(grid, text=label, font=FONT, bg=COL_BG, fg=COL_TEXT).grid(row=row, column=0, sticky="w", pady=8)
            var = tk.StringVar(value="")
            tk.Label(grid, textvariable=var, font=FONT_BIG, bg=COL_BG, fg=COL_VALUE).grid(
                row=row, column=1, sticky="w", padx=20
            )
            self._values[label] = var

        tk.Label(self._idle, textvariable=self._notice, font=FONT, bg=COL_BG, fg=COL_VALUE).pack(anchor="w", padx=20)

        buttons = tk.Frame(self._idle, bg=COL_BG)
        buttons.pack(fill="x", padx=10, pady=20)
        for text, event, color in (
            ("Tare", events.TARE, COL_BUTTON),
            ("Store", events.STORE, COL_BUTTON),
            ("Reset", events.RESET, COL_DANGER),
            ("Calib", events.BEGIN_CALIBRATION, COL_BUTTON),
        ):
            self._button(buttons, text, event, color=color).pack(side="left", expand=True, fill="x", padx=5)

    def _build_calibration(self) -> None:
        left = tk.Frame(self._calib, bg=COL_BG)
        left.pack(side="left", fill="both", expand=True, padx=20, pady=20)
        tk.Label(left, textvariable=self._prompt, font=FONT, bg=COL_BG, fg=COL_TEXT, justify="left").pack(anchor="w")
        tk.Label(
            left,
            textvariable=self._entry,
            font=FONT_BIG,
            bg=COL_BG,
            fg=COL_VALUE,
            relief="solid",
            bd=1,
            width=12,
            anchor="w",
        ).pack(anchor="w", pady=10)
        tk.Label(left, textvariable=self._error, font=FONT, bg=COL_BG, fg=COL_DANGER).pack(anchor="w")
        self._button(left, "Cancel", events.CANCEL).pack(anchor="w", pady=10)

        pad = tk.Frame(self._calib, bg=COL_BG)
        pad.pack(side="right", padx=20, pady=20)
        for row, labels in enumerate(KEYPAD_ROWS):
            for column, label in enumerate(labels):
                self._button(pad, label, _key_event(label)).grid(
                    row=row, column=column, sticky="nsew", padx=5, pady=5
                )
        self._button(pad, "C", events.CLEAR, color=COL_DANGER).grid(
            row=len(KEYPAD_ROWS), column=0, columnspan=3, sticky="nsew", padx=5, pady=5
        )

    def _show(self, frame: tk.Frame) -> None:
        if self._shown is frame:
            return
        if self._shown is not None:
            self._shown.pack_forget()
        frame.pack(fill="both", expand=True)
        self._shown = frame

    # ------------------------------------------------------------------
    def render_idle(self, view: IdleView) -> None:
        for label, value in idle_rows(view):
            self._values[label].set(value)
        self._notice.set(view.notice)
        self._show(self._idle)

    def render_calibration(self, view: CalibrationView) -> None:
        self._prompt.set("\n".join(view.prompts))
        self._entry.set(view.entry)
        self._error.set(view.error)
        self._show(self._calib)

    def poll_event(self) -> Optional[InputEvent]:
        return self.latch.poll()

    # ------------------------------------------------------------------
    def run(self, step: Callable[[], None], interval_s: float) -> None:
        """Drive ``step`` every ``interval_s`` seconds from the Tk event loop."""

        interval_ms = max(1, int(round(interval_s * 1000)))

        def tick() -> None:
            try:
                step()
            except Exception:
                LOGGER.exception("Monitor step failed")
            self._after_id = self.root.after(interval_ms, tick)

        tick()
        self.root.mainloop()

    def close(self) -> None:
        if self._after_id is not None:
            try:
                self.root.after_cancel(self._after_id)
            except tk.TclError:
                pass
            self._after_id = None
        try:
            self.root.destroy()
        except tk.TclError:
            LOGGER.debug("Tk root already destroyed")


__all__ = ["TouchScreen"]
