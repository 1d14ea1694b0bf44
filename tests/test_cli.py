"""
CLI commands against a local-only store
"""
import json

import pytest
from click.testing import CliRunner

from main import main
from tests.conftest import make_design

LOCAL_ONLY_ENV = {"SUPABASE_URL": "", "SUPABASE_ANON_KEY": "", "SUPABASE_ACCESS_TOKEN": ""}


@pytest.fixture
def runner():
    return CliRunner(env=LOCAL_ONLY_ENV)


@pytest.fixture
def data_dir(tmp_path):
    return str(tmp_path / "data")


@pytest.fixture
def legacy_file(tmp_path):
    rows = [
        make_design(label_id="tea-1", name="Tea shelf").to_payload(),
        {
            "id": "saved_1",
            "name": "Old label",
            "thumbnail": "",
            "productData": {"name": "Coffee", "price": 12},
            "labelSize": {"width": 40, "height": 30},
            "createdAt": "2024-01-01T00:00:00Z",
        },
        {"labelId": "broken", "labelSize": {"width": 0, "height": 30}},
    ]
    path = tmp_path / "legacy.json"
    path.write_text(json.dumps(rows, ensure_ascii=False), encoding="utf-8")
    return str(path)


def test_import_then_list(runner, data_dir, legacy_file):
    result = runner.invoke(main, ["--data-dir", data_dir, "import-legacy", legacy_file])
    assert result.exit_code == 0, result.output
    assert "Imported 2 designs, skipped 1" in result.output

    result = runner.invoke(main, ["--data-dir", data_dir, "list"])
    assert result.exit_code == 0, result.output
    assert "Showing local designs only" in result.output
    assert "tea-1" in result.output
    assert "saved_1" in result.output
    assert "2 designs" in result.output


def test_list_empty(runner, data_dir):
    result = runner.invoke(main, ["--data-dir", data_dir, "list"])
    assert result.exit_code == 0
    assert "No designs yet." in result.output


def test_show(runner, data_dir, legacy_file):
    runner.invoke(main, ["--data-dir", data_dir, "import-legacy", legacy_file])
    result = runner.invoke(main, ["--data-dir", data_dir, "show", "tea-1"])
    assert result.exit_code == 0, result.output
    payload = json.loads(result.output)
    assert payload["labelId"] == "tea-1"
    assert payload["labelName"] == "Tea shelf"


def test_show_missing(runner, data_dir):
    result = runner.invoke(main, ["--data-dir", data_dir, "show", "nope"])
    assert result.exit_code == 1
    assert "design not found: nope" in result.output


def test_export_writes_file_and_history(runner, data_dir, legacy_file, tmp_path):
    out_dir = tmp_path / "out"
    runner.invoke(main, ["--data-dir", data_dir, "import-legacy", legacy_file])
    result = runner.invoke(main, [
        "--data-dir", data_dir, "export", "tea-1",
        "--format", "pdf", "--profile", "screen", "--out-dir", str(out_dir),
    ])
    assert result.exit_code == 0, result.output
    [written] = list(out_dir.iterdir())
    assert written.name.startswith("Oolong_tea_")
    assert written.suffix == ".pdf"
    assert written.read_bytes().startswith(b"%PDF")

    result = runner.invoke(main, ["--data-dir", data_dir, "history"])
    assert result.exit_code == 0
    assert written.name in result.output


def test_sync_needs_cloud(runner, data_dir):
    result = runner.invoke(main, ["--data-dir", data_dir, "sync"])
    assert result.exit_code == 1
    assert "Cloud store not configured" in result.output


def test_settings(runner, data_dir):
    result = runner.invoke(main, ["--data-dir", data_dir, "settings", "--language", "en-US", "--no-auto-save"])
    assert result.exit_code == 0, result.output
    shown = json.loads(result.output)
    assert shown["language"] == "en-US"
    assert shown["autoSaveEnabled"] is False

    result = runner.invoke(main, ["--data-dir", data_dir, "settings"])
    assert json.loads(result.output)["language"] == "en-US"


def test_export_legacy_writes_saved_labels_with_thumbnails(runner, data_dir, legacy_file, tmp_path):
    runner.invoke(main, ["--data-dir", data_dir, "import-legacy", legacy_file])
    out = tmp_path / "saved.json"
    result = runner.invoke(main, ["--data-dir", data_dir, "export-legacy", str(out)])
    assert result.exit_code == 0, result.output
    assert "Wrote 2 saved labels" in result.output

    rows = json.loads(out.read_text(encoding="utf-8"))
    assert {row["id"] for row in rows} == {"tea-1", "saved_1"}
    assert all(row["thumbnail"].startswith("data:image/png;base64,") for row in rows)
    assert "layout" not in rows[0]

    fresh = str(tmp_path / "fresh")
    result = runner.invoke(main, ["--data-dir", fresh, "import-legacy", str(out)])
    assert "Imported 2 designs, skipped 0" in result.output
