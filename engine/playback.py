from __future__ import annotations

import logging
import queue
import threading
from collections import deque
from dataclasses import dataclass
from typing import BinaryIO, Optional, Protocol

import av
import av.error
import numpy as np

from engine.errors import PlaybackInitError

logger = logging.getLogger("jukebox.playback")


class PlaybackDriver(Protocol):
    """Audio output boundary: decodes a byte stream and plays it."""

    def start(self, source: BinaryIO) -> None: ...

    def is_active(self) -> bool: ...

    def wait_for_drain(self) -> None: ...


@dataclass(frozen=True, slots=True)
class DecodedChunk:
    pcm: np.ndarray
    eof: bool = False


def _to_frames(arr: np.ndarray) -> np.ndarray:
    """Planar (channels, samples) -> contiguous float32 (samples, channels)."""
    if arr.ndim == 1:
        arr = arr[None, :]
    out = arr.T
    if out.dtype != np.float32:
        out = out.astype(np.float32)
    return np.ascontiguousarray(out)


class _Ring:
    def __init__(self, channels: int):
        self.channels = channels
        self.q: deque[np.ndarray] = deque()
        self.frames = 0
        self.eof = False
        self.underflows = 0
        self._scratch: np.ndarray | None = None

    def push(self, chunk: DecodedChunk) -> None:
        if chunk.pcm.size:
            self.q.append(chunk.pcm)
            self.frames += chunk.pcm.shape[0]
        if chunk.eof:
            self.eof = True

    def drain_from(self, pcm_q: queue.Queue) -> None:
        while True:
            try:
                self.push(pcm_q.get_nowait())
            except queue.Empty:
                return

    def pull(self, n: int) -> tuple[np.ndarray, bool]:
        # Reuse a scratch buffer to avoid per-callback allocations.
        out = self._scratch
        if out is None or out.shape != (n, self.channels):
            out = np.zeros((n, self.channels), dtype=np.float32)
            self._scratch = out
        else:
            out.fill(0.0)
        filled = 0
        while filled < n and self.q:
            a = self.q[0]
            take = min(n - filled, a.shape[0])
            out[filled:filled + take] = a[:take]
            if take == a.shape[0]:
                self.q.popleft()
            else:
                self.q[0] = a[take:]
            self.frames -= take
            filled += take
        done = self.eof and not self.q
        if filled < n and not done:
            self.underflows += 1
        return out, done


class SoundDevicePlayback:
    """Plays one stream through the default (or configured) output device.

    A background thread decodes with PyAV into a bounded queue; the
    PortAudio callback drains that queue through a ring. ``is_active`` turns
    false once the last decoded frame has been handed to the device, and
    ``wait_for_drain`` then blocks until the device has played it out.
    """

    def __init__(self, *, block_frames: int = 2048, queue_chunks: int = 32, device: Optional[str] = None) -> None:
        self.block_frames = int(block_frames)
        self.queue_chunks = int(queue_chunks)
        self.device = device
        self.decode_error: Optional[BaseException] = None

        self._container = None
        self._stream = None
        self._decode_thread: Optional[threading.Thread] = None
        self._pcm_q: queue.Queue = queue.Queue(maxsize=self.queue_chunks)
        self._ring: Optional[_Ring] = None
        self._stop = threading.Event()
        self._drained = threading.Event()
        self._finished = threading.Event()

    def start(self, source: BinaryIO) -> None:
        try:
            import sounddevice as sd
        except OSError as e:
            # PortAudio shared library missing.
            raise PlaybackInitError(f"Audio output unavailable: {e}") from e

        try:
            container = av.open(source)
        except (av.error.FFmpegError, OSError, ValueError) as e:
            raise PlaybackInitError(f"Cannot open audio stream: {e}") from e

        try:
            stream = next((s for s in container.streams if s.type == "audio"), None)
            if stream is None:
                raise PlaybackInitError("No audio stream to play")

            sample_rate = int(stream.codec_context.sample_rate or stream.rate or 48000)
            channels = 1 if len(stream.codec_context.layout.channels) == 1 else 2
            resampler = av.AudioResampler(
                format="fltp",
                layout="mono" if channels == 1 else "stereo",
                rate=sample_rate,
            )
        except PlaybackInitError:
            container.close()
            raise
        except (av.error.FFmpegError, OSError, ValueError, AttributeError) as e:
            container.close()
            raise PlaybackInitError(f"Cannot set up decoder: {e}") from e

        self._container = container
        self._ring = _Ring(channels)
        self._decode_thread = threading.Thread(
            target=self._decode_loop,
            args=(container, stream, resampler),
            name="jukebox-decode",
            daemon=True,
        )
        self._decode_thread.start()

        ring = self._ring
        pcm_q = self._pcm_q
        drained = self._drained

        def callback(outdata, frames, t, status):
            if status:
                logger.debug("Output status: %s", status)
            ring.drain_from(pcm_q)
            out, done = ring.pull(frames)
            outdata[:] = out
            if done:
                drained.set()
                raise sd.CallbackStop()

        try:
            self._stream = sd.OutputStream(
                samplerate=sample_rate,
                channels=channels,
                dtype="float32",
                blocksize=self.block_frames,
                callback=callback,
                finished_callback=self._finished.set,
                device=self.device,
            )
            self._stream.start()
        except (sd.PortAudioError, ValueError) as e:
            self._stream = None
            self._shutdown_decoder()
            raise PlaybackInitError(f"Cannot open output device {self.device or 'default'}: {e}") from e

        logger.info(
            "Opened output stream device=%s sr=%d ch=%d block=%d",
            self.device or "default",
            sample_rate,
            channels,
            self.block_frames,
        )

    def _put(self, chunk: DecodedChunk) -> bool:
        # Block for queue space, but give up promptly once stopped.
        while not self._stop.is_set():
            try:
                self._pcm_q.put(chunk, timeout=0.1)
                return True
            except queue.Full:
                continue
        return False

    def _decode_loop(self, container, stream, resampler) -> None:
        try:
            for frame in container.decode(stream):
                if self._stop.is_set():
                    return
                frame.pts = None
                for out_frame in resampler.resample(frame):
                    if not self._put(DecodedChunk(_to_frames(out_frame.to_ndarray()))):
                        return
            for out_frame in resampler.resample(None):
                if not self._put(DecodedChunk(_to_frames(out_frame.to_ndarray()))):
                    return
        except av.error.FFmpegError as e:
            self.decode_error = e
        finally:
            self._put(DecodedChunk(np.zeros((0, 1), dtype=np.float32), eof=True))

    def is_active(self) -> bool:
        if self._stream is None:
            return False
        return not (self._drained.is_set() or self._finished.is_set())

    def wait_for_drain(self) -> None:
        if self._stream is None:
            return
        self._finished.wait()
        try:
            self._stream.close()
        finally:
            self._stream = None
            self._shutdown_decoder()
        if self.decode_error is not None:
            logger.warning("Playback ended early after decode error: %s", self.decode_error)
        if self._ring is not None and self._ring.underflows:
            logger.warning("Output underflowed %d time(s)", self._ring.underflows)

    def _shutdown_decoder(self) -> None:
        self._stop.set()
        if self._decode_thread is not None:
            self._decode_thread.join(timeout=2.0)
            self._decode_thread = None
        if self._container is not None:
            self._container.close()
            self._container = None
