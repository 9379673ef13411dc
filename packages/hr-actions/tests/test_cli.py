import json
from datetime import datetime, timedelta, timezone

from hr_actions import ActionService, SqliteActionStore
from hr_actions.cli import main

NOW = datetime.now(timezone.utc)


def _seed(db_path):
    service = ActionService(SqliteActionStore(db_path))
    late = service.create(
        {
            "type": "Send Reminder",
            "target": "Form 12BB",
            "description": "Chase missing tax declarations",
            "category": "compliance",
            "scheduled_for": (NOW - timedelta(days=2)).isoformat(),
        },
        created_by="hr-1",
    )
    recurring = service.create(
        {
            "type": "Backup Data",
            "target": "HR database",
            "description": "Nightly backup",
            "category": "maintenance",
            "is_recurring": True,
            "recurring_pattern": "daily",
        },
        created_by="hr-1",
    )
    service.complete(recurring.id)
    service.close()
    return late, recurring


def _args(tmp_path, *args):
    return [*args, "--db", str(tmp_path / "actions.db"), "--log-file", str(tmp_path / "cli.log")]


def test_overdue_lists_late_actions(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    late, _ = _seed(tmp_path / "actions.db")
    capsys.readouterr()
    assert main(_args(tmp_path, "overdue")) == 0
    out = capsys.readouterr().out
    assert late.id in out
    assert "Form 12BB" in out


def test_due_lists_nothing_before_next_run(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    _seed(tmp_path / "actions.db")
    capsys.readouterr()
    assert main(_args(tmp_path, "due")) == 0
    assert capsys.readouterr().out == ""


def test_show_prints_json(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    _, recurring = _seed(tmp_path / "actions.db")
    capsys.readouterr()
    assert main(_args(tmp_path, "show", recurring.id)) == 0
    data = json.loads(capsys.readouterr().out)
    assert data["status"] == "Completed"
    assert data["next_run_at"] is not None


def test_show_unknown_action(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    _seed(tmp_path / "actions.db")
    capsys.readouterr()
    assert main(_args(tmp_path, "show", "missing")) == 1
    assert "Action not found: missing" in capsys.readouterr().err


def test_bad_config_file(tmp_path, capsys):
    config = tmp_path / "bad.toml"
    config.write_text("[[[")
    assert main(["overdue", "--config", str(config)]) == 2
    assert "Failed to load config" in capsys.readouterr().err
