from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Callable, Optional, Protocol

from engine.errors import FileAccessError
from engine.playback import PlaybackDriver
from engine.probe import probe_track
from engine.progress import ProgressState
from engine.track import TrackMetadata
from engine.tuning import PlayerTuning
from ui.terminal import Renderer

logger = logging.getLogger("jukebox.player")

Prober = Callable[[Path], tuple[TrackMetadata, float]]


class Player(Protocol):
    def initialize(self) -> None: ...

    def render_header(self) -> None: ...

    def render_advance(self, cell_index: int) -> None: ...

    def run(self) -> None: ...

    def on_tick(self) -> int: ...


class Jukebox:
    """One playback session: probe, paint the header, play, track progress.

    The progress loop runs on the calling thread. It polls
    ``playback.is_active()`` and converts elapsed wall-clock time into bar
    cells; there is no separate timer or render thread.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        renderer: Renderer,
        playback: PlaybackDriver,
        tuning: Optional[PlayerTuning] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        prober: Prober = probe_track,
    ) -> None:
        self.path = Path(path)
        self.renderer = renderer
        self.playback = playback
        self.tuning = tuning or PlayerTuning()
        self._clock = clock
        self._sleep = sleep
        self._prober = prober

        self.metadata: Optional[TrackMetadata] = None
        self.state: Optional[ProgressState] = None

    def initialize(self) -> None:
        metadata, duration = self._prober(self.path)
        self.metadata = metadata
        self.state = ProgressState(total_duration=duration, bar_width=self.tuning.bar_width)
        if self.state.total_duration <= 0:
            logger.warning("%s reports zero duration; progress bar will stay empty", metadata.file_name)

    def render_header(self) -> None:
        self.renderer.render_header(self.metadata, self.state.bar_width)

    def render_advance(self, cell_index: int) -> None:
        self.renderer.render_advance(cell_index)

    def on_tick(self) -> int:
        return self.state.advance(self._clock(), self.render_advance)

    def run(self) -> None:
        if self.state is None:
            self.initialize()

        poll_interval = self.tuning.poll_interval
        polls = 0
        try:
            self.render_header()
            try:
                audio = open(self.metadata.file_path, "rb")
            except OSError as e:
                raise FileAccessError(f"Cannot open {self.metadata.file_name}: {e}", path=self.metadata.file_path) from e
            with audio:
                self.playback.start(audio)
                self.state.start(self._clock())
                logger.info(
                    "Playing %s (%.3fs, %.3fs per cell)",
                    self.metadata.file_name,
                    self.state.total_duration,
                    self.state.seconds_per_cell,
                )

                while self.playback.is_active():
                    self.on_tick()
                    polls += 1
                    if poll_interval > 0:
                        self._sleep(poll_interval)

                self.state.finish()
                logger.info(
                    "Queue drained after %.3fs: %d/%d cells, %d polls",
                    self.state.current_elapsed,
                    self.state.bar_position,
                    self.state.bar_width,
                    polls,
                )
                self.playback.wait_for_drain()
        finally:
            self.renderer.finish()
