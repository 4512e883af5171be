from typer.testing import CliRunner

from cli.main import app

runner = CliRunner()


def test_validate_accepts_good_commands():
    result = runner.invoke(app, ["--quiet", "validate", "curl {host}/a", "curl -X POST /b"])

    assert result.exit_code == 0, result.output


def test_validate_fails_on_bad_command():
    result = runner.invoke(app, ["--quiet", "validate", "curl {host}/a", "curl --bogus-flag http://x"])

    assert result.exit_code == 1


def test_validate_reads_command_file(tmp_path):
    commands = tmp_path / "commands.txt"
    commands.write_text("curl {host}/a\ncurl -H 'A: b' \\\n  {host}/b\n", encoding="utf-8")

    result = runner.invoke(app, ["--quiet", "validate", "--file", str(commands)])

    assert result.exit_code == 0, result.output


def test_run_rejects_invalid_hosts():
    result = runner.invoke(app, ["--quiet", "run", "curl {host}/a", "--hosts", "bad_host!"])

    assert result.exit_code == 2


def test_run_requires_a_command():
    result = runner.invoke(app, ["--quiet", "run", "--hosts", "a.test"])

    assert result.exit_code == 2
