from __future__ import annotations

import json
from pathlib import Path

from typer.testing import CliRunner

from loopflow.cli import app
from loopflow.config import get_config_path

runner = CliRunner()


def _seed(repo: Path) -> None:
    state = repo / ".loop-flow"
    state.mkdir(parents=True)
    (state / "backlog.json").write_text(
        json.dumps({"tasks": [{"id": "LF-001", "title": "Add retry", "priority": "high"}]})
    )
    (state / "progress.txt").write_text(
        "## 2024-01-01 | Session 1\nTask: LF-001 Add retry\nOutcome: COMPLETE\n\n"
        "### Summary\nRetries with jitter.\n\n---\n"
    )


def test_root_help_lists_commands() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("init", "status", "import", "export", "search", "tasks", "context"):
        assert command in result.stdout


def test_init_imports_legacy_files(repo: Path) -> None:
    _seed(repo)

    result = runner.invoke(app, ["init", "--repo", str(repo)])

    assert result.exit_code == 0, result.output
    assert "1 tasks" in result.stdout
    assert "1 sessions" in result.stdout
    assert (repo / ".loop-flow" / "loopflow.db").exists()


def test_import_reports_skips_on_rerun(repo: Path) -> None:
    _seed(repo)
    runner.invoke(app, ["init", "--repo", str(repo), "--no-import"])

    first = runner.invoke(app, ["import", "--repo", str(repo)])
    second = runner.invoke(app, ["import", "--repo", str(repo)])

    assert first.exit_code == 0, first.output
    assert "1 tasks imported, 0 skipped" in first.stdout
    assert "0 tasks imported, 1 skipped" in second.stdout
    assert "0 sessions imported, 1 skipped" in second.stdout


def test_import_of_unreadable_file_exits_non_zero(repo: Path, tmp_path: Path) -> None:
    result = runner.invoke(
        app, ["import", "--repo", str(repo), "--backlog", str(tmp_path / "missing.json")]
    )
    assert result.exit_code == 1
    assert "SOURCE_UNREADABLE" in result.stdout


def test_tasks_search_and_sessions(repo: Path) -> None:
    _seed(repo)
    runner.invoke(app, ["init", "--repo", str(repo)])

    tasks = runner.invoke(app, ["tasks", "--repo", str(repo), "--priority", "high"])
    search = runner.invoke(app, ["search", "jitter", "--repo", str(repo)])
    sessions = runner.invoke(app, ["sessions", "--repo", str(repo), "--json"])

    assert "LF-001" in tasks.stdout
    assert "2024-01-01-S1" in search.stdout
    assert json.loads(sessions.stdout)[0]["outcome"] == "COMPLETE"


def test_invalid_filter_value_is_reported(repo: Path) -> None:
    result = runner.invoke(app, ["search", "x", "--kind", "notes", "--repo", str(repo)])
    assert result.exit_code == 1


def test_context_set_and_show(repo: Path) -> None:
    set_result = runner.invoke(
        app, ["context", "set", "suggested_actions", '["ship it"]', "--repo", str(repo)]
    )
    show_result = runner.invoke(app, ["context", "show", "--repo", str(repo)])

    assert set_result.exit_code == 0, set_result.output
    assert json.loads(show_result.stdout)["suggested_actions"] == ["ship it"]


def test_export_writes_legacy_files(repo: Path, tmp_path: Path) -> None:
    _seed(repo)
    runner.invoke(app, ["init", "--repo", str(repo)])
    output = tmp_path / "out"

    result = runner.invoke(app, ["export", "--repo", str(repo), "--output", str(output)])

    assert result.exit_code == 0, result.output
    assert json.loads((output / "backlog.json").read_text())["tasks"][0]["id"] == "LF-001"
    assert "Session 1" in (output / "progress.txt").read_text()


def test_config_set_persists_and_show_reports_it() -> None:
    set_result = runner.invoke(app, ["config", "set", "search_limit", "7"])
    show_result = runner.invoke(app, ["config", "show"])

    assert set_result.exit_code == 0, set_result.output
    assert "search_limit = 7" in set_result.stdout
    assert show_result.exit_code == 0, show_result.output
    assert "search_limit: 7" in show_result.stdout
    assert json.loads(get_config_path().read_text()) == {"search_limit": 7}


def test_config_set_rejects_unknown_key() -> None:
    result = runner.invoke(app, ["config", "set", "bogus", "1"])

    assert result.exit_code == 1
    assert not get_config_path().exists()
