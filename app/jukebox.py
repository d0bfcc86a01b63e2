from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from engine.errors import PlayerError
from engine.playback import SoundDevicePlayback
from engine.player import Jukebox
from engine.tuning import load_player_tuning
from log.service_log import setup_logging
from ui.terminal import TerminalRenderer

logger = logging.getLogger("jukebox.app")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jukebox",
        description="Play an audio file with a live terminal progress bar.",
    )
    parser.add_argument("filepath", type=Path, help="audio file to play")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    log_path = setup_logging()
    if log_path is not None:
        logger.info("Logging to %s", log_path)

    tuning = load_player_tuning()
    console = Console(highlight=False)
    err_console = Console(stderr=True, highlight=False)

    player = Jukebox(
        args.filepath,
        renderer=TerminalRenderer(console, tuning),
        playback=SoundDevicePlayback(
            block_frames=tuning.block_frames,
            queue_chunks=tuning.queue_chunks,
            device=tuning.output_device,
        ),
        tuning=tuning,
    )

    try:
        player.initialize()
        player.run()
    except PlayerError as e:
        logger.error("%s: %s", type(e).__name__, e)
        err_console.print(f"[bold red]error:[/bold red] {escape(str(e))}", markup=True, soft_wrap=True)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
