"""
Progress bar state machine.

Maps elapsed wall-clock time onto a fixed number of bar cells. Cell ``k``
(1-indexed) is due once ``total_duration * k / bar_width`` seconds have
passed. This is a sampling approximation: accuracy is bounded by how often
``advance`` is called, and drift against the audio clock is accepted.

Invariants:
- 0 <= bar_position <= bar_width
- next_threshold_index == bar_position + 1 and never decreases
- at most bar_width cells are ever reported
- a zero (or unknown) duration never crosses a threshold
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional


class PlaybackPhase(Enum):
    IDLE = "idle"
    PLAYING = "playing"
    FINISHED = "finished"


@dataclass(slots=True)
class ProgressState:
    total_duration: float
    bar_width: int = 20
    elapsed_reference: float = 0.0
    current_elapsed: float = 0.0
    bar_position: int = 0
    next_threshold_index: int = 1
    phase: PlaybackPhase = PlaybackPhase.IDLE

    def __post_init__(self) -> None:
        if int(self.bar_width) <= 0:
            raise ValueError(f"bar_width must be positive, got {self.bar_width}")
        self.bar_width = int(self.bar_width)
        if self.total_duration is None or self.total_duration < 0:
            self.total_duration = 0.0
        self.total_duration = float(self.total_duration)

    @property
    def seconds_per_cell(self) -> float:
        return self.total_duration / self.bar_width

    @property
    def is_full(self) -> bool:
        return self.bar_position >= self.bar_width

    def next_threshold(self) -> Optional[float]:
        """Elapsed seconds at which the next unfilled cell is due, if any."""
        if self.total_duration <= 0 or self.is_full:
            return None
        # Multiply before dividing so k * T / W lands exactly on whole seconds.
        return self.total_duration * self.next_threshold_index / self.bar_width

    def start(self, now: float) -> None:
        if self.phase is not PlaybackPhase.IDLE:
            raise RuntimeError(f"cannot start from {self.phase.value}")
        self.elapsed_reference = float(now)
        self.current_elapsed = 0.0
        self.phase = PlaybackPhase.PLAYING

    def advance(self, now: float, on_advance: Callable[[int], None]) -> int:
        """Sample the clock and fill every cell whose threshold has passed.

        ``on_advance`` is called once per filled cell with its 0-based index,
        in order. A coarse poll that skips several thresholds still reports
        each cell separately. Returns how many cells were filled.
        """
        if self.phase is not PlaybackPhase.PLAYING:
            return 0

        self.current_elapsed = float(now) - self.elapsed_reference
        filled = 0
        while True:
            threshold = self.next_threshold()
            if threshold is None or self.current_elapsed < threshold:
                break
            cell = self.bar_position
            self.next_threshold_index += 1
            self.bar_position += 1
            on_advance(cell)
            filled += 1
        return filled

    def finish(self) -> None:
        self.phase = PlaybackPhase.FINISHED
