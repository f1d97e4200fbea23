from __future__ import annotations

import pytest

from thinkforge import cli


def test_no_arguments_shows_home(capsys):
    assert cli.main([]) == 0

    out = capsys.readouterr().out
    assert "ThinkForge: your AI study companion." in out
    assert "Usage: thinkforge <command>" in out


def test_home_command_matches_landing_page(capsys):
    assert cli.main(["home"]) == 0
    assert "Available commands:" in capsys.readouterr().out


def test_command_table_marks_protected_routes():
    table = cli.format_command_table()

    for name in ("chat", "quiz", "progress", "topics"):
        line = next(row for row in table.splitlines() if row.strip().startswith(name))
        assert "(login required)" in line
    login_line = next(
        row for row in table.splitlines() if row.strip().startswith("login")
    )
    assert "(login required)" not in login_line
    assert "quiz" in table and "(TUI)" in table


def test_list_and_help(capsys):
    assert cli.main(["list"]) == 0
    assert "confirm-email" in capsys.readouterr().out

    assert cli.main(["help", "topics"]) == 0
    out = capsys.readouterr().out
    assert out.startswith("topics: ")
    assert "log in first" in out


def test_help_for_unknown_command(capsys):
    assert cli.main(["help", "nope"]) == 2
    assert "Unknown command 'nope'." in capsys.readouterr().err


def test_unknown_route_is_not_found(capsys):
    assert cli.main(["settings"]) == 2

    err = capsys.readouterr().err
    assert "Page not found: 'settings' is not a ThinkForge command." in err
    assert "Available commands:" in err


def test_version_flag(monkeypatch, capsys):
    monkeypatch.setattr(cli.metadata, "version", lambda name: "9.9.9")

    assert cli.main(["--version"]) == 0
    assert capsys.readouterr().out.strip() == "9.9.9"


def test_routes_dispatch_to_command_modules(tmp_path, capsys):
    target = tmp_path / "thinkforge.toml"

    assert cli.main(["config", "path", "--path", str(target)]) == 0
    assert capsys.readouterr().out.strip() == str(target.resolve())


def test_argparse_exit_is_normalised(capsys):
    assert cli.main(["chat", "--help"]) == 0
    assert "thinkforge chat" in capsys.readouterr().out


def test_protected_route_without_backend_reports_config_error(capsys):
    assert cli.main(["progress"]) == 2

    assert "SUPABASE_URL" in capsys.readouterr().err


@pytest.mark.parametrize("code, expected", [(None, 0), (3, 3), ("boom", 1)])
def test_system_exit_codes(code, expected):
    def target(argv):
        raise SystemExit(code)

    assert cli._invoke_main(target, "thinkforge x", []) == expected
