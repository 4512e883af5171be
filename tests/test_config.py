from core.config import AppSettings, write_user_env_vars
from core.domain.execution_mode import ExecutionMode


def test_settings_read_prefixed_environment(monkeypatch):
    monkeypatch.setenv("HOSTDIFF_HTTP_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("HOSTDIFF_EXECUTION_MODE", "per-template")
    monkeypatch.setenv("HOSTDIFF_PROXY_FALLBACK", "true")

    settings = AppSettings()

    assert settings.http_timeout_seconds == 2.5
    assert settings.execution_mode is ExecutionMode.PER_TEMPLATE
    assert settings.proxy_fallback is True


def test_execution_mode_default_and_labels():
    assert ExecutionMode.default() is ExecutionMode.ALL_AT_ONCE
    assert ExecutionMode("per-template").label().startswith("Per template")


def test_write_user_env_vars_merges(tmp_path):
    env_path = tmp_path / "cfg" / ".env"
    env_path.parent.mkdir()
    env_path.write_text("# old\nHOSTDIFF_USER_AGENT='custom'\nHOSTDIFF_PROXY_FALLBACK=false\n", encoding="utf-8")

    written = write_user_env_vars({"HOSTDIFF_PROXY_FALLBACK": "true"}, env_path=env_path)

    assert written == env_path
    lines = env_path.read_text(encoding="utf-8").splitlines()
    assert lines[1:] == ["HOSTDIFF_PROXY_FALLBACK=true", "HOSTDIFF_USER_AGENT=custom"]
