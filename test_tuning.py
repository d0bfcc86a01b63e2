import json
import os
from pathlib import Path

import pytest

from engine.tuning import DEFAULT_BAR_WIDTH, PlayerTuning, load_player_tuning, resolve_tuning_path


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in list(os.environ):
        if name.startswith("JUKEBOX_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_without_file_or_env() -> None:
    assert load_player_tuning() == PlayerTuning()
    assert resolve_tuning_path().name == "jukebox_tuning.json"


def test_json_file_then_env_precedence(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / "jukebox_tuning.json").write_text(
        json.dumps({"display": {"bar_width": 40, "bar_glyph": "#"}, "output": {"device": "pulse"}}),
        encoding="utf-8",
    )

    tuning = load_player_tuning()
    assert tuning.bar_width == 40
    assert tuning.bar_glyph == "#"
    assert tuning.output_device == "pulse"

    monkeypatch.setenv("JUKEBOX_BAR_WIDTH", "32")
    assert load_player_tuning().bar_width == 32


def test_tuning_path_override(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "conf" / "player.json"
    custom.parent.mkdir()
    custom.write_text(json.dumps({"playback": {"poll_interval": 0}}), encoding="utf-8")
    monkeypatch.setenv("JUKEBOX_TUNING_PATH", "conf/player.json")

    assert resolve_tuning_path().resolve() == (tmp_path / "conf" / "player.json").resolve()
    assert load_player_tuning().poll_interval == 0.0


def test_bad_values_are_ignored(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    (tmp_path / "jukebox_tuning.json").write_text("{not json", encoding="utf-8")
    monkeypatch.setenv("JUKEBOX_POLL_INTERVAL", "fast")

    assert load_player_tuning() == PlayerTuning()


def test_bar_width_must_stay_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("JUKEBOX_BAR_WIDTH", "0")

    assert load_player_tuning().bar_width == DEFAULT_BAR_WIDTH
