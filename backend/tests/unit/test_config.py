# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for YAML configuration loading
"""

import pytest

from chatflow.core.config import Config, load_config
from chatflow.core.errors import ConfigurationError


def test_defaults_when_file_missing(temp_dir, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    config = load_config(str(temp_dir / "missing.yaml"))

    assert config == Config()
    assert config.execution_log_limit == 50
    assert config.polling_interval == 2.0
    assert config.unresolved_template_policy == "keep-literal"
    assert config.restore_on_startup is False


def test_loads_sections(temp_dir, monkeypatch):
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    path = temp_dir / "chatflow.yaml"
    path.write_text(
        "server:\n"
        "  port: 9000\n"
        "  public_base_url: https://bots.example.com/\n"
        "engine:\n"
        "  node_timeout: 5\n"
        "  unresolved_template_policy: empty\n"
        "workflows:\n"
        "  restore_on_startup: true\n"
        "logging:\n"
        "  level: DEBUG\n"
    )

    config = load_config(str(path))

    assert config.service_port == 9000
    assert config.node_timeout == 5
    assert config.unresolved_template_policy == "empty"
    assert config.restore_on_startup is True
    assert config.log_level == "DEBUG"
    assert config.chat_webhook_url_pattern == "https://bots.example.com/api/chat/webhook/{workflow_id}"


def test_log_level_env_override(temp_dir, monkeypatch):
    path = temp_dir / "chatflow.yaml"
    path.write_text("logging:\n  level: DEBUG\n")
    monkeypatch.setenv("LOG_LEVEL", "WARNING")

    assert load_config(str(path)).log_level == "WARNING"


def test_invalid_policy(temp_dir):
    path = temp_dir / "chatflow.yaml"
    path.write_text("engine:\n  unresolved_template_policy: guess\n")

    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_invalid_yaml(temp_dir):
    path = temp_dir / "chatflow.yaml"
    path.write_text("server: [unclosed\n")

    with pytest.raises(ConfigurationError):
        load_config(str(path))


def test_secrets_come_from_environment(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")

    config = Config()

    assert config.get_anthropic_api_key() == "sk-test"
    assert config.get_telegram_bot_token() == "123:abc"
