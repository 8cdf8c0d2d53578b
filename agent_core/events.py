"""Synchronous publish/subscribe bus for the agent's lifecycle events.

Subscribers are keyed by event class name, or by '*' for every event. publish()
returns only after every matching subscriber has been called, in registration order.
A subscriber that raises is logged and skipped. A subscriber that returns a coroutine
has it scheduled as a background task on the running loop.

There is no replay: a subscriber only sees events published after it registered.
event_history is a bounded debugging aid, not a delivery mechanism.
"""

import asyncio
import inspect
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from bubus import BaseEvent

from agent_core.utils import create_task_with_error_handling

logger = logging.getLogger(__name__)

WILDCARD = '*'

EventHandler = Callable[[BaseEvent[Any]], Any]
EventPattern = str | type[BaseEvent[Any]]


@dataclass
class _Subscription:
	token: int
	pattern: str
	handler: EventHandler
	once: bool = False
	removed: bool = False


def _pattern_name(event_type: EventPattern) -> str:
	if isinstance(event_type, str):
		return event_type
	if isinstance(event_type, type) and issubclass(event_type, BaseEvent):
		return event_type.__name__
	raise TypeError(f'Expected an event class, an event type name or {WILDCARD!r}, got {event_type!r}')


def _handler_name(handler: EventHandler) -> str:
	return getattr(handler, '__qualname__', None) or getattr(handler, '__name__', None) or repr(handler)


class EventBus:
	def __init__(self, name: str = 'AgentCoreBus', history_limit: int = 100):
		self.name = name
		self.event_history: deque[BaseEvent[Any]] = deque(maxlen=history_limit)
		self._subscriptions: list[_Subscription] = []
		self._tokens = itertools.count(1)
		self._pending_tasks: set[asyncio.Task[Any]] = set()

	def __repr__(self) -> str:
		return f'EventBus({self.name}, listeners={len(self._subscriptions)}, history={len(self.event_history)})'

	# Subscription ------------------------------------------------------------

	def on(self, event_type: EventPattern, handler: EventHandler) -> Callable[[], None]:
		"""Register handler for an event class, an event class name or '*'.

		Returns a callable that removes exactly this registration. Calling it more than
		once is harmless.
		"""
		return self._add(event_type, handler, once=False)

	subscribe = on

	def once(self, event_type: EventPattern, handler: EventHandler) -> Callable[[], None]:
		return self._add(event_type, handler, once=True)

	def off(self, event_type: EventPattern, handler: EventHandler) -> bool:
		"""Remove the earliest registration of handler for event_type. Returns whether one was found."""
		pattern = _pattern_name(event_type)
		for subscription in self._subscriptions:
			if subscription.pattern == pattern and subscription.handler == handler:
				self._remove(subscription)
				return True
		return False

	def _add(self, event_type: EventPattern, handler: EventHandler, once: bool) -> Callable[[], None]:
		if not callable(handler):
			raise TypeError(f'Event handler must be callable, got {handler!r}')
		subscription = _Subscription(token=next(self._tokens), pattern=_pattern_name(event_type), handler=handler, once=once)
		self._subscriptions.append(subscription)

		def unsubscribe() -> None:
			self._remove(subscription)

		return unsubscribe

	def _remove(self, subscription: _Subscription) -> None:
		if subscription.removed:
			return
		subscription.removed = True
		self._subscriptions = [s for s in self._subscriptions if s.token != subscription.token]

	def listener_count(self, event_type: EventPattern | None = None) -> int:
		if event_type is None:
			return len(self._subscriptions)
		pattern = _pattern_name(event_type)
		return sum(1 for s in self._subscriptions if s.pattern == pattern)

	def remove_all_listeners(self, event_type: EventPattern | None = None) -> None:
		pattern = _pattern_name(event_type) if event_type is not None else None
		for subscription in list(self._subscriptions):
			if pattern is None or subscription.pattern == pattern:
				self._remove(subscription)

	# Publishing --------------------------------------------------------------

	def publish(self, event: BaseEvent[Any]) -> BaseEvent[Any]:
		event_type = event.event_type
		self.event_history.append(event)

		# Snapshot so handlers registered during this fan-out only see later events
		for subscription in list(self._subscriptions):
			if subscription.removed:
				continue
			if subscription.pattern != WILDCARD and subscription.pattern != event_type:
				continue
			if subscription.once:
				self._remove(subscription)

			try:
				result = subscription.handler(event)
			except Exception as e:
				logger.error(
					f'❌ {self.name} handler {_handler_name(subscription.handler)} failed for {event_type}: '
					f'{type(e).__name__}: {e}',
					exc_info=True,
				)
				continue

			if inspect.isawaitable(result):
				self._schedule(result, event_type, subscription.handler)

		return event

	def _schedule(self, awaitable: Awaitable[Any], event_type: str, handler: EventHandler) -> None:
		try:
			asyncio.get_running_loop()
		except RuntimeError:
			logger.warning(
				f'⚠️ {self.name} handler {_handler_name(handler)} returned a coroutine for {event_type} '
				'but no event loop is running, dropping it'
			)
			if inspect.iscoroutine(awaitable):
				awaitable.close()
			return

		async def _run() -> Any:
			return await awaitable

		task = create_task_with_error_handling(
			_run(),
			name=f'{self.name}.{event_type}.{_handler_name(handler)}',
			logger_instance=logger,
			suppress_exceptions=True,
		)
		self._pending_tasks.add(task)
		task.add_done_callback(self._pending_tasks.discard)

	async def wait_until_idle(self, timeout: float | None = None) -> None:
		"""Wait for background handler tasks scheduled by publish() to finish."""
		while self._pending_tasks:
			await asyncio.wait(list(self._pending_tasks), timeout=timeout)
			if timeout is not None:
				return

	async def expect(
		self,
		event_type: EventPattern,
		timeout: float | None = None,
		predicate: Callable[[BaseEvent[Any]], bool] | None = None,
	) -> BaseEvent[Any]:
		"""Wait for the next matching event published after this call.

		Raises:
			TimeoutError: No matching event arrived within timeout seconds.
		"""
		future: asyncio.Future[BaseEvent[Any]] = asyncio.get_running_loop().create_future()

		def _resolve(event: BaseEvent[Any]) -> None:
			if future.done():
				return
			if predicate is None or predicate(event):
				future.set_result(event)

		unsubscribe = self.on(event_type, _resolve)
		try:
			return await asyncio.wait_for(future, timeout=timeout)
		finally:
			unsubscribe()

	# History -----------------------------------------------------------------

	def get_recent_events(self, limit: int = 10) -> list[BaseEvent[Any]]:
		if limit <= 0:
			return []
		return list(self.event_history)[-limit:]

	def get_events_by_type(self, event_type: EventPattern, limit: int | None = None) -> list[BaseEvent[Any]]:
		pattern = _pattern_name(event_type)
		events = [e for e in self.event_history if e.event_type == pattern]
		if limit is not None:
			return events[-limit:] if limit > 0 else []
		return events

	def clear_history(self) -> None:
		self.event_history.clear()
