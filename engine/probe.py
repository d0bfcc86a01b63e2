from __future__ import annotations

import logging
from pathlib import Path

import av
import av.error
import filetype
import fleep

from engine.errors import DurationUnavailableError, FileAccessError, UnknownFormatError
from engine.track import TrackMetadata

logger = logging.getLogger("jukebox.probe")

# fleep only ever inspects the first 128 bytes of a file; filetype up to 8 KiB.
FLEEP_BYTES = 128
SNIFF_BYTES = 8192


def _require_file(path: Path) -> None:
    if not path.exists():
        raise FileAccessError(f"No such file: {path}", path=str(path))
    if not path.is_file():
        raise FileAccessError(f"Not a regular file: {path}", path=str(path))


def sniff_mime_type(path: Path) -> str:
    """Identify the file by its leading bytes, not its extension."""
    try:
        with path.open("rb") as f:
            head = f.read(SNIFF_BYTES)
    except OSError as e:
        raise FileAccessError(f"Cannot read {path}: {e}", path=str(path)) from e

    info = fleep.get(head[:FLEEP_BYTES])
    if info.type_matches("audio"):
        # Matches are ordered by signature length; prefer the best audio one.
        return next((m for m in info.mime if m.startswith("audio/")), info.mime[0])

    # fleep only knows MP3 by its ID3 tag; filetype also matches bare MPEG frame sync.
    kind = filetype.guess(head)
    if kind is not None and kind.mime.startswith("audio/"):
        return kind.mime

    if info.mime:
        raise UnknownFormatError(
            f"Unsupported file type {info.mime[0]} ({', '.join(info.type)}): {path.name}",
            path=str(path),
        )
    if kind is not None:
        raise UnknownFormatError(f"Unsupported file type {kind.mime}: {path.name}", path=str(path))
    raise UnknownFormatError(f"Unrecognised file type: {path.name}", path=str(path))


def probe_metadata(path: str | Path) -> TrackMetadata:
    p = Path(path)
    _require_file(p)
    mime_type = sniff_mime_type(p)
    try:
        size = p.stat().st_size
    except OSError as e:
        raise FileAccessError(f"Cannot stat {p}: {e}", path=str(p)) from e

    return TrackMetadata(
        file_path=str(p),
        file_name=p.name,
        mime_type=mime_type,
        size_bytes=int(size),
    )


def probe_duration(path: str | Path) -> float:
    """Return the track length in seconds as reported by the container.

    Only header/stream metadata is consulted; the file is never decoded.
    Formats whose headers carry no duration raise DurationUnavailableError.
    """
    p = Path(path)
    try:
        container = av.open(str(p))
    except (av.error.FFmpegError, OSError, ValueError) as e:
        raise DurationUnavailableError(f"Cannot open {p.name} for duration: {e}", path=str(p)) from e

    try:
        stream = next((s for s in container.streams if s.type == "audio"), None)
        if stream is None:
            raise DurationUnavailableError(f"No audio stream in {p.name}", path=str(p))
        if stream.duration is not None and stream.time_base is not None:
            return float(stream.duration * stream.time_base)
        if container.duration is not None:
            return float(container.duration) / av.time_base
        raise DurationUnavailableError(f"Duration unknown for {p.name}", path=str(p))
    finally:
        container.close()


def probe_track(path: str | Path) -> tuple[TrackMetadata, float]:
    metadata = probe_metadata(path)
    duration = probe_duration(metadata.file_path)
    logger.info(
        "Probed %s mime=%s size=%d duration=%.3fs",
        metadata.file_name,
        metadata.mime_type,
        metadata.size_bytes,
        duration,
    )
    return metadata, duration
