from __future__ import annotations

import json
import logging
import os
import sys
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Optional

logger = logging.getLogger("jukebox.tuning")

TUNING_FILENAME = "jukebox_tuning.json"

# Central defaults (used as fallbacks when env vars and/or jukebox_tuning.json are absent).
DEFAULT_BAR_WIDTH = 20
DEFAULT_BAR_ROW = 3
DEFAULT_BAR_COLUMN = 0
DEFAULT_LABEL_WIDTH = 9
DEFAULT_BAR_GLYPH = "="
DEFAULT_POLL_INTERVAL = 0.005
DEFAULT_BLOCK_FRAMES = 2048
DEFAULT_QUEUE_CHUNKS = 32


@dataclass(frozen=True, slots=True)
class PlayerTuning:
    """Display layout and playback buffering knobs."""

    # Progress bar layout
    bar_width: int = DEFAULT_BAR_WIDTH
    bar_row: int = DEFAULT_BAR_ROW
    bar_column: int = DEFAULT_BAR_COLUMN
    label_width: int = DEFAULT_LABEL_WIDTH
    bar_glyph: str = DEFAULT_BAR_GLYPH

    # rich style strings
    label_style: str = "grey70"
    value_style: str = "green"
    glyph_style: str = "bold green"

    # Seconds slept between polls; 0 spins.
    poll_interval: float = DEFAULT_POLL_INTERVAL

    # Output buffering (interpreted by SoundDevicePlayback)
    block_frames: int = DEFAULT_BLOCK_FRAMES
    queue_chunks: int = DEFAULT_QUEUE_CHUNKS
    output_device: Optional[str] = None


# (json section, json key, env var, type) per tuning field.
_SOURCES: dict[str, tuple[str, str, str, type]] = {
    "bar_width": ("display", "bar_width", "JUKEBOX_BAR_WIDTH", int),
    "bar_row": ("display", "bar_row", "JUKEBOX_BAR_ROW", int),
    "bar_column": ("display", "bar_column", "JUKEBOX_BAR_COLUMN", int),
    "label_width": ("display", "label_width", "JUKEBOX_LABEL_WIDTH", int),
    "bar_glyph": ("display", "bar_glyph", "JUKEBOX_BAR_GLYPH", str),
    "label_style": ("display", "label_style", "JUKEBOX_LABEL_STYLE", str),
    "value_style": ("display", "value_style", "JUKEBOX_VALUE_STYLE", str),
    "glyph_style": ("display", "glyph_style", "JUKEBOX_GLYPH_STYLE", str),
    "poll_interval": ("playback", "poll_interval", "JUKEBOX_POLL_INTERVAL", float),
    "block_frames": ("output", "block_frames", "JUKEBOX_BLOCK_FRAMES", int),
    "queue_chunks": ("output", "queue_chunks", "JUKEBOX_QUEUE_CHUNKS", int),
    "output_device": ("output", "device", "JUKEBOX_OUTPUT_DEVICE", str),
}


def _is_frozen() -> bool:
    # PyInstaller sets sys.frozen and sys._MEIPASS.
    return bool(getattr(sys, "frozen", False))


def _runtime_root() -> Path:
    # Frozen: next to the executable. Otherwise the working directory.
    if _is_frozen():
        try:
            return Path(sys.executable).resolve().parent
        except OSError:
            pass
    return Path.cwd()


def resolve_tuning_path() -> Path:
    """Return the path the tuning file is (or would be) read from."""

    env = (os.environ.get("JUKEBOX_TUNING_PATH") or "").strip()
    if env:
        p = Path(env)
        if not p.is_absolute():
            p = _runtime_root() / p
        return p
    return _runtime_root() / TUNING_FILENAME


def _read_json(path: Path) -> dict[str, Any] | None:
    if not path.exists():
        return None
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable tuning file %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Ignoring tuning file %s: top level is not an object", path)
        return None
    return data


def _coerce(raw: Any, kind: type, *, source: str) -> Any:
    if raw is None:
        return None
    if isinstance(raw, str):
        raw = raw.strip()
        if raw == "":
            return None
    try:
        return kind(raw)
    except (TypeError, ValueError):
        logger.warning("Ignoring %s=%r: expected %s", source, raw, kind.__name__)
        return None


def _validate(tuning: PlayerTuning) -> PlayerTuning:
    fixes: dict[str, Any] = {}
    if tuning.bar_width <= 0:
        logger.warning("bar_width must be positive (got %d); using %d", tuning.bar_width, DEFAULT_BAR_WIDTH)
        fixes["bar_width"] = DEFAULT_BAR_WIDTH
    if tuning.poll_interval < 0:
        fixes["poll_interval"] = 0.0
    if tuning.block_frames <= 0:
        fixes["block_frames"] = DEFAULT_BLOCK_FRAMES
    if tuning.queue_chunks <= 0:
        fixes["queue_chunks"] = DEFAULT_QUEUE_CHUNKS
    if not tuning.bar_glyph:
        fixes["bar_glyph"] = DEFAULT_BAR_GLYPH
    return replace(tuning, **fixes) if fixes else tuning


def load_player_tuning(path: Path | None = None) -> PlayerTuning:
    """Load tuning with precedence: defaults < JSON file < JUKEBOX_* env vars."""

    tuning_path = path or resolve_tuning_path()
    data = _read_json(tuning_path) or {}

    values: dict[str, Any] = {}
    for f in fields(PlayerTuning):
        section, key, env_name, kind = _SOURCES[f.name]

        section_data = data.get(section)
        if isinstance(section_data, dict) and key in section_data:
            v = _coerce(section_data[key], kind, source=f"{tuning_path.name}:{section}.{key}")
            if v is not None:
                values[f.name] = v

        v = _coerce(os.environ.get(env_name), kind, source=env_name)
        if v is not None:
            values[f.name] = v

    tuning = _validate(PlayerTuning(**values))
    logger.debug("Tuning from %s: %s", tuning_path, tuning)
    return tuning
