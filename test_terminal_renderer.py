import io

from rich.console import Console

from engine.track import TrackMetadata
from engine.tuning import PlayerTuning
from ui.terminal import TerminalRenderer

CLEAR_HOME = "\x1b[2J\x1b[H"


def _renderer(**tuning) -> tuple[TerminalRenderer, io.StringIO]:
    buf = io.StringIO()
    # Force terminal mode so cursor controls are emitted; no color keeps output readable.
    console = Console(file=buf, force_terminal=True, color_system=None, width=120)
    return TerminalRenderer(console, PlayerTuning(**tuning)), buf


def _song() -> TrackMetadata:
    return TrackMetadata(
        file_path="/music/song.mp3",
        file_name="song.mp3",
        mime_type="audio/mpeg",
        size_bytes=4000000,
    )


def test_header_paints_labels_values_and_bar_frame() -> None:
    renderer, buf = _renderer()

    renderer.render_header(_song(), 20)
    out = buf.getvalue()

    assert out.startswith(CLEAR_HOME)
    # Cursor addressing is 1-based: (row, col) = (y + 1, x + 1).
    assert "\x1b[1;1HPlaying:" in out
    assert "\x1b[1;10Hsong.mp3" in out
    assert "\x1b[2;1HType:" in out
    assert "\x1b[2;10Haudio/mpeg" in out
    assert "\x1b[3;10H4000000 bytes" in out
    assert "\x1b[4;1H[" in out
    assert "\x1b[4;22H]" in out


def test_header_render_is_idempotent() -> None:
    renderer, buf = _renderer()

    renderer.render_header(_song(), 20)
    first = buf.getvalue()
    renderer.render_header(_song(), 20)
    both = buf.getvalue()

    assert both == first + first


def test_advance_paints_one_cell_without_clearing() -> None:
    renderer, buf = _renderer()
    renderer.render_header(_song(), 20)
    buf.seek(0)
    buf.truncate()

    renderer.render_advance(0)
    renderer.render_advance(1)
    out = buf.getvalue()

    assert out == "\x1b[4;2H=\x1b[4;3H="
    assert "\x1b[2J" not in out


def test_layout_follows_tuning() -> None:
    renderer, buf = _renderer(bar_row=6, bar_column=2, bar_glyph="#", label_width=12)

    renderer.render_header(_song(), 10)
    out = buf.getvalue()
    assert "\x1b[1;13Hsong.mp3" in out
    assert "\x1b[7;3H[" in out
    assert "\x1b[7;14H]" in out

    buf.seek(0)
    buf.truncate()
    renderer.render_advance(9)
    assert buf.getvalue() == "\x1b[7;13H#"


def test_finish_parks_cursor_below_bar() -> None:
    renderer, buf = _renderer()

    renderer.finish()

    out = buf.getvalue()
    assert "\x1b[5;1H" in out
    assert out.endswith("\x1b[?25h")
