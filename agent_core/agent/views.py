from typing import Any

from pydantic import BaseModel, Field, model_validator

from agent_core.config import CONFIG


class AgentSettings(BaseModel):
	"""Configuration options for the BrowserAgent. Defaults are read from the environment."""

	session_timeout: float = Field(default_factory=lambda: CONFIG.AGENT_CORE_SESSION_TIMEOUT)
	cleanup_interval: float = Field(default_factory=lambda: CONFIG.AGENT_CORE_CLEANUP_INTERVAL)
	max_retries: int = Field(default_factory=lambda: CONFIG.AGENT_CORE_MAX_RETRIES, ge=1)
	retry_delay: float = Field(default_factory=lambda: CONFIG.AGENT_CORE_RETRY_DELAY, ge=0)
	error_window: float = Field(default_factory=lambda: CONFIG.AGENT_CORE_ERROR_WINDOW)
	max_errors_per_window: int = Field(default_factory=lambda: CONFIG.AGENT_CORE_MAX_ERRORS_PER_WINDOW)
	max_crash_recovery_attempts: int = 3
	exclude_actions: list[str] = Field(default_factory=list)
	event_history_limit: int = 100


class ActionResult(BaseModel):
	"""Result of executing an action"""

	success: bool = True
	is_done: bool = False

	# Error handling - always include in long term memory
	error: str | None = None
	error_type: str | None = None

	# Always include in long term memory
	long_term_memory: str | None = None

	# if include_extracted_content_only_once is True the planner is shown extracted_content for the next step only
	extracted_content: str | None = None
	include_extracted_content_only_once: bool = False

	# Metadata for observability (e.g., click coordinates)
	metadata: dict[str, Any] | None = None

	@model_validator(mode='after')
	def error_means_failure(self):
		if self.error is not None:
			self.success = False
		return self

	def consume_extracted_content(self) -> str | None:
		"""Read extracted_content, clearing it when it is only meant to be seen once."""
		content = self.extracted_content
		if self.include_extracted_content_only_once:
			self.extracted_content = None
		return content
