"""Configuration system for agent-core."""

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FlatEnvConfig(BaseSettings):
	"""All environment variables in a flat namespace."""

	model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', case_sensitive=True, extra='allow')

	# Logging
	AGENT_CORE_LOGGING_LEVEL: str = Field(default='info')
	AGENT_CORE_SETUP_LOGGING: bool = Field(default=True)

	# Automation engine
	AGENT_CORE_CDP_URL: str = Field(default='http://127.0.0.1:9222')
	AGENT_CORE_COMMAND_TIMEOUT: float = Field(default=30.0)

	# Session pool
	AGENT_CORE_SESSION_TIMEOUT: float = Field(default=30.0)
	AGENT_CORE_CLEANUP_INTERVAL: float = Field(default=10.0)

	# Retry / rate limiting
	AGENT_CORE_MAX_RETRIES: int = Field(default=3)
	AGENT_CORE_RETRY_DELAY: float = Field(default=1.0)
	AGENT_CORE_ERROR_WINDOW: float = Field(default=60.0)
	AGENT_CORE_MAX_ERRORS_PER_WINDOW: int = Field(default=10)


class Config:
	"""Configuration proxy that re-reads environment variables on every access."""

	def __getattr__(self, name: str) -> Any:
		if name.startswith('_'):
			raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

		env_config = FlatEnvConfig()
		if name in FlatEnvConfig.model_fields:
			value = getattr(env_config, name)
			if name == 'AGENT_CORE_LOGGING_LEVEL':
				return value.lower()
			return value

		raise AttributeError(f"'{self.__class__.__name__}' object has no attribute '{name}'")

	def __dir__(self) -> list[str]:
		return sorted(FlatEnvConfig.model_fields)


CONFIG = Config()
