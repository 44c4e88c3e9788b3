import csv
import json
import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

from typer.testing import CliRunner

from sheetdrill.domain.constants import CARD_TEMPLATE_HEADERS, STATS_TEMPLATE_HEADERS
from sheetdrill.interface.cli import app

runner = CliRunner()


def _read_csv(path: Path):
    with path.open(newline="", encoding="utf-8") as f:
        return list(csv.reader(f))


def _local(root: Path) -> list[str]:
    return ["--backend", "local", "--local-dir", str(root)]


# --- Deck management ---


def test_load_writes_new_progress_rows(mock_home, local_deck):
    result = runner.invoke(app, ["load", "deck", *_local(local_deck)])

    assert result.exit_code == 0, result.output
    assert "Cards: 2" in result.output
    assert "New progress rows: 2" in result.output

    rows = _read_csv(local_deck / "deck" / "Card Progress.csv")
    assert rows[0] == STATS_TEMPLATE_HEADERS
    assert rows[1][:4] == ["안녕하세요", "Hello", "annyeonghaseyo", "0"]
    assert rows[2][:2] == ["감사합니다", "Thank you"]


def test_load_missing_columns_fails(mock_home, local_deck):
    path = local_deck / "deck" / "Card Data.csv"
    path.write_text("question,tags\nA,x\n", encoding="utf-8")

    result = runner.invoke(app, ["load", "deck", *_local(local_deck)])

    assert result.exit_code == 1
    assert "missing required columns: back" in result.output


def test_load_requires_spreadsheet(mock_home):
    result = runner.invoke(app, ["load"])
    assert result.exit_code == 1
    assert "No spreadsheet given" in result.output


def test_init_sheet(mock_home, tmp_path):
    (tmp_path / "fresh").mkdir()

    result = runner.invoke(app, ["init-sheet", "fresh", *_local(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Created tabs: Card Data, Card Progress" in result.output
    assert _read_csv(tmp_path / "fresh" / "Card Data.csv") == [CARD_TEMPLATE_HEADERS]


def test_init_sheet_unknown_spreadsheet(mock_home, tmp_path):
    result = runner.invoke(app, ["init-sheet", "ghost", *_local(tmp_path)])
    assert result.exit_code == 1
    assert "Metadata read failed" in result.output


def test_create_sheet(mock_home, tmp_path):
    result = runner.invoke(app, ["create-sheet", "--title", "Korean Basics", *_local(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "ID:  Korean-Basics" in result.output
    assert (tmp_path / "Korean-Basics" / "Card Progress.csv").exists()


def test_prompt(tmp_path):
    notes = tmp_path / "notes.txt"
    notes.write_text("Lesson 3: food words", encoding="utf-8")

    result = runner.invoke(app, ["prompt", "--notes", str(notes)])

    assert result.exit_code == 0
    assert "\t".join(CARD_TEMPLATE_HEADERS) in result.output
    assert "Lesson 3: food words" in result.output


def test_prompt_unreadable_notes(tmp_path):
    result = runner.invoke(app, ["prompt", "--notes", str(tmp_path / "missing.txt")])
    assert result.exit_code == 1


# --- Study ---


def test_study_one_card_round(mock_home, local_deck):
    path = local_deck / "deck" / "Card Data.csv"
    path.write_text("question,answer\n물,Water\n", encoding="utf-8")

    # One card means one option: pick it, then decline another round
    result = runner.invoke(app, ["study", "deck", *_local(local_deck)], input="1\nn\n")

    assert result.exit_code == 0, result.output
    assert "Correct." in result.output
    assert "Round complete." in result.output
    assert "Accuracy:        100%" in result.output

    rows = _read_csv(local_deck / "deck" / "Card Progress.csv")
    assert rows[1][:7] == ["물", "Water", "", "1", "1", "0", "1"]
    assert rows[1][8] == "correct"
    assert rows[1][9] == "0.748"


def test_study_rejects_bad_keys_then_quits(mock_home, local_deck):
    result = runner.invoke(
        app,
        ["study", "deck", "--seed", "3", *_local(local_deck)],
        input="7\nx\ns\nq\n",
    )

    assert result.exit_code == 0, result.output
    assert "Pick one of the listed numbers." in result.output
    assert "Nothing to sync." in result.output
    assert "Cards unloaded." in result.output


def test_study_missing_tabs(mock_home, tmp_path):
    (tmp_path / "empty").mkdir()
    result = runner.invoke(app, ["study", "empty", *_local(tmp_path)])
    assert result.exit_code == 1
    assert "Unable to parse range" in result.output


# --- Server ---


@patch("uvicorn.run")
def test_server_command(mock_run):
    result = runner.invoke(app, ["server", "--port", "9000"])
    assert result.exit_code == 0
    mock_run.assert_called_with("sheetdrill.server:app", host="127.0.0.1", port=9000, reload=False)


# --- Config ---


@patch("sheetdrill.interface.cli.resolve_config")
def test_config_show(mock_resolve_config):
    mock_config = MagicMock()
    mock_config.model_dump.return_value = {
        "backend": "local",
        "local_dir": "/tmp/decks",
        "access_token": "secret",
    }
    mock_resolve_config.return_value = mock_config

    result = runner.invoke(app, ["config", "show"])

    assert result.exit_code == 0
    output_data = json.loads(result.stdout)
    assert output_data["backend"] == "local"
    assert output_data["local_dir"] == "/tmp/decks"
    assert output_data["access_token"] == "***"


def test_verbose_flag_sets_debug_logging():
    root = logging.getLogger()
    level = root.level
    try:
        result = runner.invoke(app, ["-v", "-v", "prompt"])
        assert result.exit_code == 0
        assert root.level == logging.DEBUG

        runner.invoke(app, ["prompt"])
        assert root.level == logging.INFO
    finally:
        root.setLevel(level)
