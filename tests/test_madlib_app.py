import json
import shutil
import subprocess
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import madlib_app  # noqa: E402


def _resolve_madlibs_exe():
    exe = shutil.which("madlibs")
    if exe:
        return exe
    candidate = Path(sys.executable).with_name("madlibs")
    if candidate.exists():
        return str(candidate)
    return None

ENTRY = _resolve_madlibs_exe()

STORY = "Once a [adjective] [noun] wanted to [verb]. Why did the [noun] [verb]?"
DICTIONARY = "adjective sleepy\nnoun cat\nverb dance\nnoun dog\nverb sing\n"
EXPECTED = "Once a sleepy cat wanted to dance.  Why did the dog sing?  "


@pytest.fixture
def files(tmp_path):
    story = tmp_path / "story.txt"
    story.write_text(STORY, encoding="utf-8")
    dictionary = tmp_path / "dict.txt"
    dictionary.write_text(DICTIONARY, encoding="utf-8")
    return story, dictionary, tmp_path / "out.txt"


def test_fills_story_to_output_file(files):
    story, dictionary, out = files
    code = madlib_app.main(["--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes"])
    assert code == 0
    assert out.read_text(encoding="utf-8") == EXPECTED


def test_dash_output_goes_to_stdout(files, capsys):
    story, dictionary, _ = files
    code = madlib_app.main(["--story", str(story), "--dictionary", str(dictionary), "--output", "-", "--yes"])
    assert code == 0
    assert capsys.readouterr().out == EXPECTED


def test_unpaired_dictionary_key_fails(files, capsys):
    story, dictionary, out = files
    dictionary.write_text("noun cat verb", encoding="utf-8")
    code = madlib_app.main(["--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes"])
    assert code == 1
    assert "has no value" in capsys.readouterr().err
    assert not out.exists()


def test_missing_story_file_fails(files, capsys):
    _, dictionary, out = files
    code = madlib_app.main(["--story", "no-such-story.txt", "--dictionary", str(dictionary), "--output", str(out), "--yes"])
    assert code == 1
    assert "Failed loading" in capsys.readouterr().err


def test_yes_without_story_fails(capsys):
    assert madlib_app.main(["--yes"]) == 1
    assert "No story file given" in capsys.readouterr().err


def test_prompts_until_file_opens(files, monkeypatch, capsys):
    story, dictionary, out = files
    answers = iter(["missing.txt", str(story), "", str(dictionary), str(out)])
    monkeypatch.setattr(madlib_app, "_ask", lambda prompt: next(answers))
    assert madlib_app.main([]) == 0
    assert madlib_app.RETRY_MESSAGE in capsys.readouterr().err
    assert out.read_text(encoding="utf-8") == EXPECTED


def test_dictionary_goes_through_loader(files, monkeypatch):
    story, dictionary, out = files
    loaded = []
    real_load = madlib_app.load_dictionary

    def recording_load(path):
        loaded.append(path)
        return real_load(path)

    monkeypatch.setattr(madlib_app, "load_dictionary", recording_load)
    code = madlib_app.main(["--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes"])
    assert code == 0
    assert loaded == [str(dictionary)]


def test_prompted_dictionary_with_unpaired_key_fails(files, monkeypatch, capsys):
    story, dictionary, out = files
    dictionary.write_text("noun cat verb", encoding="utf-8")
    answers = iter([str(story), str(dictionary), str(out)])
    monkeypatch.setattr(madlib_app, "_ask", lambda prompt: next(answers))
    assert madlib_app.main([]) == 1
    assert "has no value" in capsys.readouterr().err
    assert not out.exists()


def test_config_with_wrong_types_is_ignored(files, tmp_path, capsys):
    story, dictionary, out = files
    cfg_path = tmp_path / "run.json"
    cfg_path.write_text(json.dumps({"story_path": 3}), encoding="utf-8")
    args = ["--load-config", str(cfg_path), "--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes"]
    assert madlib_app.main(args) == 0
    assert "Failed to load config" in capsys.readouterr().err
    assert out.read_text(encoding="utf-8") == EXPECTED


def test_prompt_eof_aborts(monkeypatch, capsys):
    def eof(prompt):
        raise EOFError

    monkeypatch.setattr(madlib_app, "_ask", eof)
    assert madlib_app.main([]) == 1
    assert "Aborted" in capsys.readouterr().err


def test_save_and_load_config(files, tmp_path):
    story, dictionary, out = files
    cfg_path = tmp_path / "run.json"
    args = ["--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes"]
    assert madlib_app.main(args + ["--spacing-from-resolved", "--save-config", str(cfg_path)]) == 0
    saved = json.loads(cfg_path.read_text(encoding="utf-8"))
    assert saved["story_path"] == str(story)
    assert saved["spacing_from_resolved"] is True

    out.unlink()
    assert madlib_app.main(["--load-config", str(cfg_path), "--yes"]) == 0
    assert out.read_text(encoding="utf-8") == EXPECTED


def test_cli_flag_overrides_config(files, tmp_path):
    story, dictionary, out = files
    cfg_path = tmp_path / "run.json"
    cfg_path.write_text(json.dumps({"story_path": "elsewhere.txt", "dictionary_path": str(dictionary)}), encoding="utf-8")
    code = madlib_app.main(["--load-config", str(cfg_path), "--story", str(story), "--output", str(out), "--yes"])
    assert code == 0
    assert out.exists()


def test_report_lists_placeholders(files, capsys):
    story, dictionary, out = files
    code = madlib_app.main(["--story", str(story), "--dictionary", str(dictionary), "--output", str(out), "--yes", "--report"])
    assert code == 0
    err = capsys.readouterr().err
    assert "Placeholders" in err
    assert "resolved" in err


def test_entrypoint_help():
    if ENTRY is None:
        pytest.skip("madlibs entrypoint not found in PATH or venv bin")
    out = subprocess.run([ENTRY, "--help"], stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, cwd=str(ROOT))
    assert out.returncode == 0
    assert "Fill in a madlib story" in out.stdout
