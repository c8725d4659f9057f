import json

import pytest

from fakes import make_record

from vocabmaster.cli import build_parser, main
from vocabmaster.config import SettingsManager


@pytest.fixture
def settings_file(tmp_path, monkeypatch):
    for key in SettingsManager.DEFAULTS:
        monkeypatch.delenv(key, raising=False)
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({
        "STORE_FILE": str(tmp_path / "data" / "words.json"),
        "MIRROR_DIR": str(tmp_path / "cloud"),
        "LLM_FALLBACK_ENABLED": False,
    }), encoding="utf-8")
    return str(path)


def write_backup(path, keys, **fields):
    words = [make_record(key, translation=f"{key}-zh", **fields).to_dict() for key in keys]
    path.write_text(json.dumps({"version": 1, "words": words}), encoding="utf-8")
    return str(path)


def test_import_then_stats_and_history(tmp_path, settings_file, capsys):
    backup = write_backup(tmp_path / "backup.json", ["run", "walk"], level=1, next_review_at=1)

    assert main(["--settings", settings_file, "import", backup]) == 0
    assert "Imported 2 words, skipped 0" in capsys.readouterr().out

    assert main(["--settings", settings_file, "import", backup]) == 0
    assert "Imported 0 words, skipped 2" in capsys.readouterr().out

    assert main(["--settings", settings_file, "stats"]) == 0
    assert "Total: 2" in capsys.readouterr().out

    assert main(["--settings", settings_file, "history", "--search", "walk"]) == 0
    out = capsys.readouterr().out
    assert "walk-zh" in out
    assert "(1 words)" in out

    mirror = tmp_path / "cloud" / "vocabmaster_data.json"
    assert json.loads(mirror.read_text(encoding="utf-8"))["wordCount"] == 2


def test_review_and_due(tmp_path, settings_file, capsys):
    backup = write_backup(tmp_path / "backup.json", ["run"], level=2, next_review_at=1)
    main(["--settings", settings_file, "import", backup])

    assert main(["--settings", settings_file, "due"]) == 0
    assert "run" in capsys.readouterr().out

    assert main(["--settings", settings_file, "review", "run", "--forgot"]) == 0
    assert "Level 0 (New)" in capsys.readouterr().out

    assert main(["--settings", settings_file, "review", "ghost"]) == 1


def test_invalid_import_is_rejected(tmp_path, settings_file, capsys):
    bad = tmp_path / "bad.json"
    bad.write_text("[]", encoding="utf-8")

    assert main(["--settings", settings_file, "import", str(bad)]) == 2
    assert "Import rejected" in capsys.readouterr().out


def test_export_and_delete(tmp_path, settings_file, capsys):
    backup = write_backup(tmp_path / "backup.json", ["run", "walk"])
    main(["--settings", settings_file, "import", backup])
    out_file = tmp_path / "export.json"

    assert main(["--settings", settings_file, "delete", "RUN"]) == 0
    assert main(["--settings", settings_file, "export", "-o", str(out_file)]) == 0
    exported = json.loads(out_file.read_text(encoding="utf-8"))
    assert [w["word"] for w in exported["words"]] == ["walk"]


def test_extras_without_llm(settings_file, capsys):
    assert main(["--settings", settings_file, "extras", "run", "synonyms"]) == 4


def test_parser_requires_a_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])
