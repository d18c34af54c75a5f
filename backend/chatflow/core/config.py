# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Chatflow Configuration - Single source of truth.
YAML is king. Env vars ONLY for secrets (and LOG_LEVEL for operators).

- ALL configuration in plain text (YAML)
- NO hidden state - everything inspectable via `cat`, `grep`, `jq`
"""

import os
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List

from chatflow.core.errors import ConfigurationError


UNRESOLVED_POLICIES = ("keep-literal", "empty", "error")


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable application configuration.
    All values from YAML. No hidden state.
    """

    # -- Server --
    service_host: str = "0.0.0.0"
    service_port: int = 8000
    public_base_url: str = "http://localhost:8000"
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    # -- Paths --
    workflows_path: str = "./data/workflows"
    state_file: str = "./data/state/active_workflows.json"
    executions_path: Optional[str] = None

    # -- HTTP --
    http_timeout: float = 30.0

    # -- Engine --
    node_timeout: float = 60.0
    execution_log_limit: int = 50
    unresolved_template_policy: str = "keep-literal"
    restore_on_startup: bool = False

    # -- Chat --
    polling_interval: float = 2.0
    session_max_age_hours: int = 24

    # -- AI --
    default_ai_model: str = "claude-3-5-sonnet-20241022"
    llm_max_tokens: int = 1024

    # -- Logging --
    log_level: str = "INFO"
    log_format: str = "json"

    @property
    def chat_webhook_url_pattern(self) -> str:
        """Returns pattern with {workflow_id} placeholder"""
        return f"{self.public_base_url.rstrip('/')}/api/chat/webhook/{{workflow_id}}"

    def get_anthropic_api_key(self) -> Optional[str]:
        """Get Anthropic API key from environment"""
        return get_anthropic_api_key()

    def get_telegram_bot_token(self) -> Optional[str]:
        """Get default Telegram bot token from environment"""
        return get_telegram_bot_token()


# =============================================================================
# SECRETS - The ONLY thing from environment variables
# =============================================================================

def get_anthropic_api_key() -> Optional[str]:
    """API keys cannot be in version control."""
    return os.getenv("ANTHROPIC_API_KEY")


def get_telegram_bot_token() -> Optional[str]:
    """Bot tokens cannot be in version control."""
    return os.getenv("TELEGRAM_BOT_TOKEN")


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: str = "configs/chatflow.yaml") -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.
    """
    if not Path(path).exists():
        return Config(log_level=os.getenv("LOG_LEVEL", "INFO"))

    try:
        with open(path) as f:
            y = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config: {e}", config_file=path)

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    policy = get(y, "engine", "unresolved_template_policy") or "keep-literal"
    if policy not in UNRESOLVED_POLICIES:
        raise ConfigurationError(
            f"engine.unresolved_template_policy must be one of {UNRESOLVED_POLICIES}, got '{policy}'",
            config_file=path
        )

    return Config(
        # Server
        service_host=get(y, "server", "host") or "0.0.0.0",
        service_port=get(y, "server", "port") or 8000,
        public_base_url=get(y, "server", "public_base_url") or "http://localhost:8000",
        cors_origins=get(y, "server", "cors_origins") or ["*"],

        # Paths
        workflows_path=get(y, "paths", "workflows") or "./data/workflows",
        state_file=get(y, "paths", "state_file") or "./data/state/active_workflows.json",
        executions_path=get(y, "paths", "executions"),

        # HTTP
        http_timeout=get(y, "http", "timeout") or 30.0,

        # Engine
        node_timeout=get(y, "engine", "node_timeout") or 60.0,
        execution_log_limit=get(y, "engine", "execution_log_limit") or 50,
        unresolved_template_policy=policy,
        restore_on_startup=bool(get(y, "workflows", "restore_on_startup", default=False)),

        # Chat
        polling_interval=get(y, "chat", "polling_interval") or 2.0,
        session_max_age_hours=get(y, "chat", "session_max_age_hours") or 24,

        # AI
        default_ai_model=get(y, "ai", "default_model") or "claude-3-5-sonnet-20241022",
        llm_max_tokens=get(y, "ai", "max_tokens") or 1024,

        # Logging
        log_level=os.getenv("LOG_LEVEL") or get(y, "logging", "level") or "INFO",
        log_format=get(y, "logging", "format") or "json",
    )


# =============================================================================
# GLOBAL INSTANCE
# =============================================================================

_config: Optional[Config] = None


def get_config() -> Config:
    """Get or create global config instance."""
    global _config
    if _config is None:
        config_path = os.getenv("CHATFLOW_CONFIG_PATH", "configs/chatflow.yaml")
        _config = load_config(config_path)
    return _config


def reload_config() -> Config:
    """Force reload configuration."""
    global _config
    _config = None
    return get_config()
