from __future__ import annotations

from typing import Protocol

from rich.console import Console
from rich.control import Control
from rich.text import Text

from engine.track import TrackMetadata
from engine.tuning import PlayerTuning


class Renderer(Protocol):
    def render_header(self, metadata: TrackMetadata, bar_width: int) -> None: ...

    def render_advance(self, cell_index: int) -> None: ...

    def finish(self) -> None: ...


class TerminalRenderer:
    """Paints the now-playing block and progress bar with cursor addressing.

    Layout (defaults):

        Playing: song.mp3
        Type:    audio/mpeg
        Size:    4000000 bytes
        [====                ]

    The header is static; each advance paints exactly one cell, so nothing
    already on screen is redrawn during playback.
    """

    def __init__(self, console: Console, tuning: PlayerTuning | None = None) -> None:
        self.console = console
        self.tuning = tuning or PlayerTuning()

    def _put(self, x: int, y: int, text: str, style: str) -> None:
        self.console.control(Control.move_to(x, y))
        self.console.print(Text(text, style=style), end="", soft_wrap=True)

    def _flush(self) -> None:
        self.console.file.flush()

    def render_header(self, metadata: TrackMetadata, bar_width: int) -> None:
        t = self.tuning

        # Clear + home makes repeated calls identical to a single one.
        self.console.control(Control.clear(), Control.home())
        self.console.show_cursor(False)

        rows = (
            ("Playing:", metadata.file_name),
            ("Type:", metadata.mime_type),
            ("Size:", metadata.size_label),
        )
        for row, (label, value) in enumerate(rows):
            self._put(0, row, label, t.label_style)
            self._put(t.label_width, row, value, t.value_style)

        self._put(t.bar_column, t.bar_row, "[", t.label_style)
        self._put(t.bar_column + bar_width + 1, t.bar_row, "]", t.label_style)
        self._flush()

    def render_advance(self, cell_index: int) -> None:
        t = self.tuning
        self._put(t.bar_column + 1 + cell_index, t.bar_row, t.bar_glyph, t.glyph_style)
        self._flush()

    def finish(self) -> None:
        # Park below the bar so the shell prompt does not land on it.
        self.console.control(Control.move_to(0, self.tuning.bar_row + 1))
        self.console.show_cursor(True)
        self._flush()
