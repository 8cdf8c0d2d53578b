"""
Shared fixtures: an in-memory engine, a controllable clock and a ready BrowserAgent.

Logging setup is disabled before agent_core is imported so caplog sees every record.
"""

import os

os.environ['AGENT_CORE_SETUP_LOGGING'] = 'false'

import asyncio
import itertools
from collections import defaultdict, deque
from collections.abc import Callable
from typing import Any

import pytest

from agent_core.agent.service import BrowserAgent
from agent_core.agent.views import AgentSettings
from agent_core.browser.views import Target
from agent_core.engine.base import EngineAdapter
from agent_core.events import EventBus


class FakeClock:
	"""Monotonic clock that only moves when told to."""

	def __init__(self, start: float = 0.0):
		self.now = start

	def __call__(self) -> float:
		return self.now

	def advance(self, seconds: float) -> None:
		self.now += seconds


class FakeEngine(EngineAdapter):
	"""In-memory engine recording every call.

	Responses for send() come from, in order: a per-method queue filled with queue(),
	a per-method handler set in responses, then built-in defaults. Any response that
	is an exception instance is raised instead of returned.
	"""

	def __init__(self, targets: list[Target] | None = None):
		if targets is None:
			targets = [Target(target_id='page-1', url='https://example.com', title='Example')]
		self.targets: dict[str, Target] = {t.target_id: t for t in targets}
		self.responses: dict[str, Any] = {}
		self.queued: dict[str, deque[Any]] = defaultdict(deque)
		self.attach_calls: list[str] = []
		self.attach_errors: deque[BaseException] = deque()
		self.attach_delay = 0.0
		self.detach_calls: list[Any] = []
		self.detach_error: BaseException | None = None
		self.detach_hook: Callable[[Any], Any] | None = None
		self.sent: list[tuple[Any, str, dict[str, Any]]] = []
		self.activated: list[str] = []
		self.closed: list[str] = []
		self.aliases: dict[str, str] = {}
		self._ids = itertools.count(1)

	def queue(self, method: str, *responses: Any) -> None:
		self.queued[method].extend(responses)

	def methods_sent(self) -> list[str]:
		return [method for _, method, _ in self.sent]

	async def attach(self, target_id: str) -> str:
		self.attach_calls.append(target_id)
		if self.attach_delay:
			await asyncio.sleep(self.attach_delay)
		if self.attach_errors:
			raise self.attach_errors.popleft()
		return f'conn-{target_id}-{next(self._ids)}'

	async def send(self, connection: Any, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
		params = params or {}
		self.sent.append((connection, method, params))

		if self.queued[method]:
			response = self.queued[method].popleft()
		elif method in self.responses:
			response = self.responses[method]
		else:
			response = self._default_response(method, params)

		if callable(response):
			response = response(params)
		if isinstance(response, BaseException):
			raise response
		return response

	def _default_response(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
		if method == 'Runtime.evaluate':
			expression = params.get('expression', '')
			if expression == 'document.readyState':
				return {'result': {'type': 'string', 'value': 'complete'}}
			if expression == 'window.innerHeight':
				return {'result': {'type': 'number', 'value': 800}}
			return {'result': {'type': 'undefined'}}
		if method == 'Page.navigate':
			return {'frameId': 'frame-1'}
		if method == 'Page.captureScreenshot':
			return {'data': 'iVBORw0KGgoAAAANSUhEUgAAAAEAAAAB'}
		return {}

	async def detach(self, connection: Any) -> None:
		self.detach_calls.append(connection)
		if self.detach_hook is not None:
			result = self.detach_hook(connection)
			if asyncio.iscoroutine(result):
				await result
		if self.detach_error is not None:
			raise self.detach_error

	async def list_targets(self) -> list[Target]:
		return list(self.targets.values())

	async def create_target(self, url: str = 'about:blank') -> str:
		target_id = f'page-{len(self.targets) + 1}'
		while target_id in self.targets:
			target_id += 'x'
		self.targets[target_id] = Target(target_id=target_id, url=url)
		return target_id

	async def close_target(self, target_id: str) -> None:
		target_id = await self.resolve_target_id(target_id)
		self.closed.append(target_id)
		self.targets.pop(target_id, None)

	async def activate_target(self, target_id: str) -> None:
		self.activated.append(target_id)

	async def resolve_target_id(self, target_id: str) -> str:
		return self.aliases.get(target_id, target_id)


@pytest.fixture
def clock() -> FakeClock:
	return FakeClock()


@pytest.fixture
def fake_engine() -> FakeEngine:
	return FakeEngine(
		targets=[
			Target(target_id='page-1', url='https://example.com', title='Example'),
			Target(target_id='page-2', url='https://example.org', title='Other'),
		]
	)


@pytest.fixture
def event_bus() -> EventBus:
	return EventBus(name='TestBus')


@pytest.fixture
def collected(event_bus: EventBus) -> list[Any]:
	"""Every event published on event_bus, in order."""
	events: list[Any] = []
	event_bus.on('*', events.append)
	return events


@pytest.fixture
def settings() -> AgentSettings:
	return AgentSettings(
		session_timeout=30,
		cleanup_interval=3600,  # sweep driven explicitly by tests
		max_retries=3,
		retry_delay=0.01,
		error_window=60,
		max_errors_per_window=10,
	)


@pytest.fixture
async def agent(fake_engine: FakeEngine, settings: AgentSettings, event_bus: EventBus, clock: FakeClock):
	browser_agent = BrowserAgent(fake_engine, settings=settings, event_bus=event_bus, clock=clock)
	yield browser_agent
	await browser_agent.close()

