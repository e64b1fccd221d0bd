from __future__ import annotations

from pathlib import Path

import pytest

from core.config import DEFAULT_EXTENSIONS, ConfigError, load_config


def _write_config(tmp_path: Path, body: str) -> Path:
    config_dir = tmp_path / "config"
    config_dir.mkdir(parents=True, exist_ok=True)
    config_path = config_dir / "config.yaml"
    config_path.write_text(body.strip(), encoding="utf-8")
    return config_path


def test_load_config_reads_yaml(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: test-token
  prefix: "?"
database:
  url: "sqlite:///./data/test.db"
tickets:
  default_max_tickets_per_user: 2
  close_delay_seconds: 5
status_api:
  enabled: true
  port: 9000
""",
    )

    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    monkeypatch.delenv("STATUS_API_KEY", raising=False)
    cfg = load_config(config_path)

    assert cfg.discord.token == "test-token"
    assert cfg.discord.prefix == "?"
    assert cfg.database.url.startswith("sqlite:///")
    assert cfg.tickets.default_max_tickets_per_user == 2
    assert cfg.tickets.close_delay_seconds == 5
    assert cfg.status_api.enabled is True
    assert cfg.status_api.port == 9000
    assert cfg.status_api.api_key == ""


def test_defaults_when_sections_missing(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(tmp_path, "discord:\n  token: abc")
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    cfg = load_config(config_path)

    assert cfg.tickets.default_max_tickets_per_user == 3
    assert cfg.tickets.close_delay_seconds == 10
    assert cfg.tickets.transcript_message_limit == 100
    assert cfg.status_api.enabled is False
    assert cfg.enabled_extensions == DEFAULT_EXTENSIONS


def test_transcript_limit_is_capped(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: abc
tickets:
  transcript_message_limit: 5000
""",
    )
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    assert load_config(config_path).tickets.transcript_message_limit == 100


def test_env_overrides_token(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(tmp_path, "discord:\n  token: yaml-token")
    monkeypatch.setenv("DISCORD_TOKEN", "env-token")
    cfg = load_config(config_path)
    assert cfg.discord.token == "env-token"


def test_placeholder_token_is_rejected(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(tmp_path, "discord:\n  token: ${DISCORD_TOKEN}")
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    with pytest.raises(ConfigError):
        load_config(config_path)


def test_max_tickets_out_of_range(tmp_path: Path, monkeypatch) -> None:
    config_path = _write_config(
        tmp_path,
        """
discord:
  token: abc
tickets:
  default_max_tickets_per_user: 9
""",
    )
    monkeypatch.delenv("DISCORD_TOKEN", raising=False)
    with pytest.raises(ConfigError):
        load_config(config_path)
