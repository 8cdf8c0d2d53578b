from abc import ABC, abstractmethod
from typing import Any

from agent_core.browser.views import Target


class EngineAdapter(ABC):
	"""What the core needs from a browser automation engine.

	A connection is an opaque handle returned by attach() and passed back to send()
	and detach(). The core never inspects it.
	"""

	cdp_url: str | None = None

	@property
	def is_connected(self) -> bool:
		return True

	async def start(self) -> 'EngineAdapter':
		"""Connect to the browser. Engines that are usable on construction return immediately."""
		return self

	async def stop(self) -> None:
		return None

	@abstractmethod
	async def attach(self, target_id: str) -> Any:
		"""Open a command channel to a target. The 'main' alias names the initial page."""

	@abstractmethod
	async def send(self, connection: Any, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
		"""Run one protocol command on an attached connection and return its result."""

	@abstractmethod
	async def detach(self, connection: Any) -> None: ...

	@abstractmethod
	async def list_targets(self) -> list[Target]: ...

	@abstractmethod
	async def create_target(self, url: str = 'about:blank') -> str: ...

	@abstractmethod
	async def close_target(self, target_id: str) -> None: ...

	async def activate_target(self, target_id: str) -> None:
		"""Bring a target to the foreground. Engines without a notion of foreground ignore this."""
		return None

	async def resolve_target_id(self, target_id: str) -> str:
		"""Map an alias such as 'main' to the id the browser reports for that target.

		Sessions and focus are keyed by the returned id, so two names for one page share a session.
		"""
		return target_id
