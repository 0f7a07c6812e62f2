from typer.testing import CliRunner

from cpm_scheduler.cli import app


runner = CliRunner()


def test_cli_edge_canonical_form():
    r = runner.invoke(app, ["edge", "3fc+5", "--tasks", "A,B,C"])
    assert r.exit_code == 0
    assert r.stdout.splitlines() == ["C:FC:+5", "normalized: 3FC+5"]


def test_cli_edge_self_reference():
    r = runner.invoke(app, ["edge", "2", "--tasks", "A,B,C", "--source", "B"])
    assert r.exit_code == 2
    assert "E_SELF_REFERENCE" in (r.stdout + r.stderr)


def test_cli_edge_invalid_token():
    r = runner.invoke(app, ["edge", "abc", "--tasks", "A,B,C"])
    assert r.exit_code == 2
    assert "E_INVALID_TOKEN" in (r.stdout + r.stderr)
