from pathlib import Path

import pytest

from outreach.errors import SettingsError
from outreach.settings import PROJECT_ROOT, SenderSettings, load_settings


def test_missing_file_uses_defaults(tmp_path):
    assert load_settings(tmp_path / "settings.yaml") == SenderSettings()


def test_bundled_settings_match_defaults():
    settings = load_settings(PROJECT_ROOT / "config" / "settings.yaml")
    assert settings.rate_limit_seconds == 30
    assert settings.recipient_window_hours == 24
    assert settings.lockout_path == PROJECT_ROOT / "logs" / "ABORT_FLAG"
    assert settings.log_path == PROJECT_ROOT / "logs" / "email-log.json"


def test_overrides_and_unknown_keys(tmp_path, caplog):
    path = tmp_path / "settings.yaml"
    path.write_text(
        "sender:\n"
        f"  log_dir: {tmp_path / 'state'}\n"
        "  rate_limit_seconds: 5\n"
        "  smtp_port: 587\n"
        "  colour: blue\n"
    )
    settings = load_settings(path)
    assert settings.log_dir == Path(tmp_path / "state")
    assert settings.rate_limit_seconds == 5
    assert settings.smtp_port == 587
    assert settings.smtp_host == "smtp.gmail.com"
    assert "colour" in caplog.text


def test_env_var_selects_file(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("sender:\n  recipient_window_hours: 12\n")
    monkeypatch.setenv("SEND_EMAIL_SETTINGS", str(path))
    assert load_settings().recipient_window_hours == 12


def test_quoted_numbers_are_coerced(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("sender:\n  rate_limit_seconds: '30'\n  recipient_window_hours: '12.5'\n  smtp_port: '587'\n")
    settings = load_settings(path)
    assert settings.rate_limit_seconds == 30.0
    assert settings.recipient_window_hours == 12.5
    assert settings.smtp_port == 587


@pytest.mark.parametrize(
    "content, message",
    [
        ("sender: [unclosed\n", "not valid YAML"),
        ("sender:\n  rate_limit_seconds: soon\n", "rate_limit_seconds"),
        ("sender:\n  smtp_port: [465]\n", "smtp_port"),
        ("sender:\n  recipient_window_hours: -1\n", "must not be negative"),
        ("sender: 30\n", "must be a mapping"),
        ("- just\n- a list\n", "mapping at the top level"),
    ],
)
def test_invalid_settings_raise(tmp_path, content, message):
    path = tmp_path / "settings.yaml"
    path.write_text(content)
    with pytest.raises(SettingsError) as excinfo:
        load_settings(path)
    assert message in str(excinfo.value)
    assert excinfo.value.path == path
