import json

import pytest
from click.testing import CliRunner

from readalong import __version__
from readalong.cli import cli

from conftest import FOUR_WORD_HTML, STORY_HTML


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def page(tmp_path):
    path = tmp_path / "page.html"
    path.write_text(FOUR_WORD_HTML, encoding="utf-8")
    return path


@pytest.fixture
def transcript(write_json, flat_transcript):
    return write_json("words.json", flat_transcript)


def test_version(runner):
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_tokens_lists_words(runner, page):
    result = runner.invoke(cli, ["tokens", str(page)])

    assert result.exit_code == 0
    assert "brown" in result.output
    assert "4 tokens" in result.output


def test_tokens_json(runner, page):
    result = runner.invoke(cli, ["tokens", str(page), "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert [t["word"] for t in data] == ["the", "quick", "brown", "fox"]


def test_tokens_unknown_selector_fails(runner, page):
    result = runner.invoke(cli, ["tokens", str(page), "--selector", "#missing"])
    assert result.exit_code == 1


def test_align_json_timeline(runner, page, transcript):
    result = runner.invoke(cli, ["align", str(page), str(transcript), "--json"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["state"] == "completed"
    assert data["highlighted"] == data["tokens"] == 4
    assert [e["index"] for e in data["timeline"]] == [0, 1, 2, 3]
    times = [e["time"] for e in data["timeline"]]
    assert times == sorted(times)


def test_align_text_output(runner, page, transcript):
    result = runner.invoke(
        cli, ["align", str(page), str(transcript), "--step", "0.1", "--offset-ms", "-50"]
    )

    assert result.exit_code == 0
    assert "Highlighted 4/4 tokens (completed)" in result.output


def test_align_rejects_large_offset(runner, page, transcript):
    result = runner.invoke(
        cli, ["align", str(page), str(transcript), "--offset-ms", "90000"]
    )
    assert result.exit_code == 1


def test_align_rejects_bad_transcript(runner, page, tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text('{"words": []}', encoding="utf-8")

    result = runner.invoke(cli, ["align", str(page), str(bad)])

    assert result.exit_code == 1


def test_align_forward_exact_fallback(runner, page, transcript):
    result = runner.invoke(
        cli,
        [
            "align", str(page), str(transcript), "--json",
            "--min-probability", "0.5", "--fallback", "forward_exact",
        ],
    )

    assert result.exit_code == 0
    assert json.loads(result.output)["highlighted"] == 4


def test_seek_finds_passage(runner, page, transcript):
    result = runner.invoke(cli, ["seek", str(page), str(transcript), "brown fox"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["success"] is True
    assert data["timestamp"] == 0.5
    assert data["match"]["start"] == 2


def test_seek_reports_failure(runner, page, transcript):
    result = runner.invoke(cli, ["seek", str(page), str(transcript), "zebra giraffe"])

    assert result.exit_code == 2
    assert json.loads(result.output)["error"] == "Low match probability"


def test_seek_rejects_bad_context_window(runner, page, transcript):
    result = runner.invoke(
        cli, ["seek", str(page), str(transcript), "brown fox", "--context-window", "2"]
    )
    assert result.exit_code == 1


def test_paragraphs(runner, tmp_path):
    path = tmp_path / "story.html"
    path.write_text(STORY_HTML, encoding="utf-8")

    result = runner.invoke(cli, ["paragraphs", str(path), "--selector", "#reader"])

    assert result.exit_code == 0
    data = json.loads(result.output)
    assert len(data) == 5
    assert data[0]["text"] == "The Fox"


def test_align_saves_timeline_file(runner, page, transcript, tmp_path):
    out = tmp_path / "timeline.json"

    result = runner.invoke(cli, ["align", str(page), str(transcript), "--out", str(out)])

    assert result.exit_code == 0
    saved = json.loads(out.read_text(encoding="utf-8"))
    assert [e["index"] for e in saved["timeline"]] == [0, 1, 2, 3]
    assert [t["word"] for t in saved["tokens"]] == ["the", "quick", "brown", "fox"]


@pytest.mark.parametrize("duration", ["-1", "nan"])
def test_align_rejects_invalid_duration(runner, page, transcript, duration):
    result = runner.invoke(
        cli, ["align", str(page), str(transcript), "--duration", duration]
    )
    assert result.exit_code == 1
