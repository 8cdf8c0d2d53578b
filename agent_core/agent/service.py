import logging
import time
from collections.abc import Callable
from typing import Any, Self

from agent_core.agent.views import ActionResult, AgentSettings
from agent_core.browser.events import BrowserConnectedEvent, BrowserStoppedEvent
from agent_core.browser.focus import FocusTracker
from agent_core.browser.session_pool import SessionPool
from agent_core.browser.views import AgentFocus, CDPSession
from agent_core.browser.watchdog_base import BaseWatchdog
from agent_core.browser.watchdogs.crash_watchdog import CrashWatchdog
from agent_core.engine.base import EngineAdapter
from agent_core.errors.service import ErrorHandler
from agent_core.events import EventBus, EventHandler, EventPattern
from agent_core.tools.service import Tools, switch_to_target

logger = logging.getLogger(__name__)


class BrowserAgent:
	"""One automation agent: an event bus, a focus, a session pool, an error handler and the tools.

	Everything is owned by the instance, so several agents can drive separate engines in
	one process without sharing state.

	```python
	async with BrowserAgent(CDPEngine('http://127.0.0.1:9222')) as agent:
		agent.subscribe('*', print)
		await agent.dispatch('navigate', {'url': 'https://example.com'})
	```
	"""

	def __init__(
		self,
		engine: EngineAdapter,
		settings: AgentSettings | None = None,
		event_bus: EventBus | None = None,
		error_handler: ErrorHandler | None = None,
		initial_page: Any = None,
		clock: Callable[[], float] = time.monotonic,
	):
		self.settings = settings or AgentSettings()
		self.engine = engine
		self.event_bus = event_bus or EventBus(history_limit=self.settings.event_history_limit)
		self.focus = FocusTracker(
			initial=AgentFocus(page=initial_page) if initial_page is not None else None,
			event_bus=self.event_bus,
		)
		self.session_pool = SessionPool(
			engine,
			focus=self.focus,
			event_bus=self.event_bus,
			session_timeout=self.settings.session_timeout,
			cleanup_interval=self.settings.cleanup_interval,
			clock=clock,
		)
		self.error_handler = error_handler or ErrorHandler(
			max_retries=self.settings.max_retries,
			retry_delay=self.settings.retry_delay,
			error_window=self.settings.error_window,
			max_errors_per_window=self.settings.max_errors_per_window,
			clock=clock,
		)
		self.tools = Tools(
			session_pool=self.session_pool,
			event_bus=self.event_bus,
			error_handler=self.error_handler,
			exclude_actions=list(self.settings.exclude_actions),
		)
		self.watchdogs: list[BaseWatchdog] = [
			CrashWatchdog(
				event_bus=self.event_bus,
				session_pool=self.session_pool,
				max_recovery_attempts=self.settings.max_crash_recovery_attempts,
			)
		]
		for watchdog in self.watchdogs:
			watchdog.attach()

		self._started = False
		self._owns_engine = False
		self._closed = False

	def __repr__(self) -> str:
		return f'BrowserAgent(focus={self.focus.target_id}, sessions={self.session_pool.size}, closed={self._closed})'

	@property
	def is_closed(self) -> bool:
		return self._closed

	async def start(self) -> Self:
		"""Connect the engine if needed and publish BrowserConnectedEvent. Only the first call does anything.

		An engine started here is stopped again by close().
		"""
		if self._closed:
			raise RuntimeError('Browser agent is closed')
		if self._started:
			return self

		if not self.engine.is_connected:
			await self.engine.start()
			self._owns_engine = True
		self._started = True

		self.event_bus.publish(BrowserConnectedEvent(cdp_url=self.engine.cdp_url))
		logger.info(f'🔌 Browser agent connected to {self.engine.cdp_url or type(self.engine).__name__}')
		return self

	async def dispatch(self, action_name: str, params: dict[str, Any] | None = None) -> ActionResult:
		"""Run one planner action and return its result. Failures come back as ActionResult, never raised."""
		return await self.tools.dispatch(action_name, params)

	def subscribe(self, event_type: EventPattern, handler: EventHandler) -> Callable[[], None]:
		return self.event_bus.subscribe(event_type, handler)

	async def switch_tab(self, target_id: str) -> CDPSession:
		return await switch_to_target(target_id, self.session_pool, self.event_bus)

	def action(self, description: str, **kwargs):
		"""Decorator for registering custom actions on this agent's tools"""
		return self.tools.action(description, **kwargs)

	async def close(self, reason: str | None = None) -> None:
		"""Detach watchdogs, destroy the session pool and announce the stop. Safe to call more than once."""
		if self._closed:
			return
		self._closed = True

		try:
			await self.session_pool.destroy()
		finally:
			if self._owns_engine:
				await self.engine.stop()
			self.event_bus.publish(BrowserStoppedEvent(reason=reason))
			for watchdog in self.watchdogs:
				watchdog.detach()
			logger.info('🛑 Browser agent closed')

	async def __aenter__(self) -> Self:
		return await self.start()

	async def __aexit__(self, *args: Any) -> None:
		await self.close()
