import logging
import os
from pathlib import Path

import pytest

import app.jukebox as cli
from engine.errors import PlaybackInitError
from log.service_log import coerce_log_path, setup_logging


@pytest.fixture(autouse=True)
def _isolated(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    for name in list(os.environ):
        if name.startswith("JUKEBOX_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    logger = logging.getLogger("jukebox")
    saved = list(logger.handlers)
    yield
    for h in logger.handlers:
        if h not in saved:
            logger.removeHandler(h)
            h.close()


def test_missing_file_exits_nonzero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main([str(tmp_path / "missing.mp3")])

    assert code == 1
    err = capsys.readouterr().err
    assert "error:" in err
    assert "missing.mp3" in err


def test_unknown_format_exits_nonzero(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    notes = tmp_path / "notes.mp3"
    notes.write_text("la la la\n" * 40, encoding="utf-8")

    assert cli.main([str(notes)]) == 1
    assert "Unrecognised" in capsys.readouterr().err


def test_requires_exactly_one_path() -> None:
    with pytest.raises(SystemExit) as exc:
        cli.main([])
    assert exc.value.code == 2


class _FakeJukebox:
    raise_on_run: Exception | None = None
    instances: list = []

    def __init__(self, path, *, renderer, playback, tuning):
        self.path = path
        self.renderer = renderer
        self.playback = playback
        self.tuning = tuning
        self.ran = False
        _FakeJukebox.instances.append(self)

    def initialize(self):
        pass

    def run(self):
        if self.raise_on_run is not None:
            raise self.raise_on_run
        self.ran = True


def test_successful_run_exits_zero(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "Jukebox", _FakeJukebox)
    monkeypatch.setattr(_FakeJukebox, "instances", [])
    monkeypatch.setenv("JUKEBOX_BAR_WIDTH", "30")

    assert cli.main([str(tmp_path / "song.mp3")]) == 0

    (player,) = _FakeJukebox.instances
    assert player.ran
    assert player.path == tmp_path / "song.mp3"
    assert player.tuning.bar_width == 30
    assert player.renderer.tuning is player.tuning
    assert player.playback.block_frames == player.tuning.block_frames


def test_playback_failure_exits_nonzero(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setattr(cli, "Jukebox", _FakeJukebox)
    monkeypatch.setattr(_FakeJukebox, "raise_on_run", PlaybackInitError("no default output device"))

    assert cli.main([str(tmp_path / "song.mp3")]) == 1
    assert "no default output device" in capsys.readouterr().err


def test_logging_is_opt_in(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    assert setup_logging() is None

    monkeypatch.setenv("JUKEBOX_LOG", "1")
    path = setup_logging()

    assert path == (tmp_path / "service_logs" / "jukebox.log").resolve()
    logging.getLogger("jukebox.test").info("hello")
    for h in logging.getLogger("jukebox").handlers:
        h.flush()
    assert "jukebox.test: hello" in path.read_text(encoding="utf-8")
    # Configuring twice reuses the existing handler.
    assert setup_logging() == path


def test_log_paths_stay_under_service_logs(tmp_path: Path) -> None:
    base = (tmp_path / "service_logs").resolve()

    assert coerce_log_path(env_value=None, default_filename="a.log") == base / "a.log"
    assert coerce_log_path(env_value="sub/", default_filename="a.log") == base / "sub" / "a.log"
    assert coerce_log_path(env_value="/etc/evil.log", default_filename="a.log") == base / "evil.log"
    outside = tmp_path / "elsewhere.log"
    assert coerce_log_path(
        env_value=str(outside), default_filename="a.log", allow_absolute_outside_service_dir=True
    ) == outside.resolve()


def test_logged_error_on_failure(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("JUKEBOX_LOG", "1")
    assert cli.main([str(tmp_path / "gone.mp3")]) == 1
    for h in logging.getLogger("jukebox").handlers:
        h.flush()
    log_text = (tmp_path / "service_logs" / "jukebox.log").read_text(encoding="utf-8")
    assert "FileAccessError" in log_text
