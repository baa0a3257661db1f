"""
Configuration manager implementation for SecGuard.

This module provides the configuration consumed by the analysis core:
model endpoint settings, ReAct loop behaviour, MCP server registrations
and logging. Values come from an optional YAML file, environment
variables and a local ``.env`` file.
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from secguard.core.exceptions import ConfigError
from secguard.core.state.model import ServerRegistration

load_dotenv()

DEFAULT_CONFIG_PATH = "configs/secguard.yaml"


class NoActionPolicy(str, Enum):
    """How a step without a usable action ends the run."""
    FINAL = "final"
    WARNING = "warning"


class LLMConfig(BaseSettings):
    """Model endpoint configuration."""

    model_config = SettingsConfigDict(env_prefix="SECGUARD_LLM_", extra="ignore")

    endpoint: str = Field(default="https://api.openai.com/v1/chat/completions")
    api_key: Optional[str] = Field(default=None)
    api_key_header: str = Field(default="apikey")
    access_code: Optional[str] = Field(default=None)
    auth_header: Optional[str] = Field(default=None)
    use_bearer: bool = Field(default=False)
    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.2)
    timeout: float = Field(default=60.0, gt=0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key or self.access_code or self.auth_header)


class AgentConfig(BaseSettings):
    """ReAct loop configuration."""

    model_config = SettingsConfigDict(env_prefix="SECGUARD_AGENT_", extra="ignore")

    auto_run: bool = Field(default=True)
    max_steps: int = Field(default=6, ge=1)
    no_action_policy: NoActionPolicy = Field(default=NoActionPolicy.FINAL)
    strict_tool_policy: bool = Field(default=True)


class MCPConfig(BaseSettings):
    """MCP tool server configuration."""

    model_config = SettingsConfigDict(env_prefix="SECGUARD_MCP_", extra="ignore")

    servers: List[ServerRegistration] = Field(default_factory=list)
    active_server_id: Optional[str] = Field(default=None)
    default_tool: Optional[str] = Field(default="security_enrichment")
    timeout: float = Field(default=20.0, gt=0)
    discovery_timeout: float = Field(default=15.0, gt=0)
    settle_delay: float = Field(default=0.2, ge=0)
    protocol_version: str = Field(default="1.0")
    client_name: str = Field(default="secguard")
    client_version: str = Field(default="0.1.0")


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    model_config = SettingsConfigDict(env_prefix="SECGUARD_LOG_", extra="ignore")

    level: str = Field(default="INFO")
    format: str = Field(default="console")


class SecGuardSettings(BaseModel):
    """Typed settings aggregate handed to the agent and its clients."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    mcp: MCPConfig = Field(default_factory=MCPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Configuration manager for SecGuard."""

    def __init__(self, config_path: Optional[str] = None):
        self._explicit_path = config_path is not None
        self.config_path = config_path or os.getenv("SECGUARD_CONFIG", DEFAULT_CONFIG_PATH)
        self._config = self._load_config()
        self._settings = self._build_settings()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file."""
        config_file = Path(self.config_path)
        if not config_file.exists():
            if self._explicit_path:
                raise ConfigError(f"Configuration file not found: {config_file}")
            return {}

        try:
            with open(config_file, "r") as f:
                config = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load configuration: {str(e)}")

        if config is None:
            return {}
        if not isinstance(config, dict):
            raise ConfigError(f"Configuration root must be a mapping: {config_file}")
        return config

    def _build_settings(self) -> SecGuardSettings:
        """Build typed settings from the YAML sections and the environment."""
        try:
            return SecGuardSettings(
                llm=LLMConfig(**self._section("llm")),
                agent=AgentConfig(**self._section("agent")),
                mcp=MCPConfig(**self._section("mcp")),
                logging=LoggingConfig(**self._section("logging")),
            )
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {str(e)}")

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._config.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"Configuration section '{name}' must be a mapping")
        return section

    def get(self, key: str, default: Any = None) -> Any:
        """Get a raw configuration value with dot notation support."""
        value = self._config
        for k in key.split("."):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    @property
    def settings(self) -> SecGuardSettings:
        return self._settings

    def get_llm_config(self) -> LLMConfig:
        """Get model endpoint configuration."""
        return self._settings.llm

    def get_agent_config(self) -> AgentConfig:
        """Get ReAct loop configuration."""
        return self._settings.agent

    def get_mcp_config(self) -> MCPConfig:
        """Get MCP configuration."""
        return self._settings.mcp

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._settings.logging

    def save_mcp_config(self, mcp_config: MCPConfig):
        """Write MCP server registrations back to the configuration file.

        Only the ``servers`` and ``active_server_id`` keys of the ``mcp``
        section are replaced. Other file content is kept and values that
        came from the environment are not written.
        """
        section = dict(self._section("mcp"))
        section["servers"] = [
            server.model_dump(mode="json", by_alias=True, exclude_none=True)
            for server in mcp_config.servers
        ]
        section["active_server_id"] = mcp_config.active_server_id
        config = dict(self._config)
        config["mcp"] = section

        config_file = Path(self.config_path)
        try:
            config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(config_file, "w") as f:
                yaml.safe_dump(config, f, sort_keys=False)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to save configuration: {str(e)}")

        self._config = config
        self._settings = self._build_settings()

    def reload(self):
        """Reload configuration from file."""
        self._config = self._load_config()
        self._settings = self._build_settings()
