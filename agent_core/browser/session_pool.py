"""Pool of live engine sessions, one per target.

Sessions are reused while they have been idle for less than session_timeout and are
recreated otherwise. A background sweep detaches sessions that went idle. Creation
and reuse are serialized by a lock so concurrent acquires for the same target share
one session.
"""

import asyncio
import logging
import time
from collections.abc import Callable

from uuid_extensions import uuid7str

from agent_core.browser.events import SessionAttachedEvent, SessionDetachedEvent
from agent_core.browser.focus import FocusTracker
from agent_core.browser.views import CDPSession
from agent_core.config import CONFIG
from agent_core.engine.base import EngineAdapter
from agent_core.errors.views import BrowserError, ErrorKind
from agent_core.events import EventBus
from agent_core.utils import create_task_with_error_handling

logger = logging.getLogger(__name__)


class SessionPool:
	def __init__(
		self,
		engine: EngineAdapter,
		focus: FocusTracker | None = None,
		event_bus: EventBus | None = None,
		session_timeout: float | None = None,
		cleanup_interval: float | None = None,
		clock: Callable[[], float] = time.monotonic,
	):
		self.engine = engine
		self.focus = focus or FocusTracker(event_bus=event_bus)
		self.event_bus = event_bus
		self.session_timeout = session_timeout if session_timeout is not None else CONFIG.AGENT_CORE_SESSION_TIMEOUT
		self.cleanup_interval = cleanup_interval if cleanup_interval is not None else CONFIG.AGENT_CORE_CLEANUP_INTERVAL
		self._clock = clock

		self._sessions: dict[str, CDPSession] = {}
		self._lock = asyncio.Lock()
		self._sweep_task: asyncio.Task[None] | None = None
		self._destroyed = False

	def __repr__(self) -> str:
		return f'SessionPool(size={self.size}, timeout={self.session_timeout}s, destroyed={self._destroyed})'

	@property
	def size(self) -> int:
		return len(self._sessions)

	@property
	def session_pool_size(self) -> int:
		return self.size

	@property
	def target_ids(self) -> list[str]:
		return list(self._sessions)

	@property
	def is_destroyed(self) -> bool:
		return self._destroyed

	def get(self, target_id: str) -> CDPSession | None:
		"""Return the cached session for target_id without touching its idle timer."""
		return self._sessions.get(target_id)

	def start(self) -> None:
		"""Start the idle sweep. Needs a running event loop; acquire() calls this on first use."""
		self._ensure_alive()
		if self._sweep_task is not None and not self._sweep_task.done():
			return
		self._sweep_task = create_task_with_error_handling(
			self._sweep_loop(),
			name='SessionPool.sweep',
			logger_instance=logger,
			suppress_exceptions=True,
		)

	async def acquire(self, target_id: str | None = None, *, focus: bool = True, force_new: bool = False) -> CDPSession:
		"""Get the live session for a target, creating one when needed.

		Args:
			target_id: Target to acquire for. Defaults to the focused target, or 'main'.
			focus: Point the agent focus at the returned session.
			force_new: Discard any cached session and attach a fresh one.

		Raises:
			BrowserError: The pool was destroyed.
		"""
		self.start()
		target_id = target_id or self.focus.resolve_target_id()
		# Key by the id the browser reports so an alias and its page share one session
		target_id = await self.engine.resolve_target_id(target_id)

		async with self._lock:
			self._ensure_alive()
			now = self._clock()
			cached = self._sessions.get(target_id)

			if cached is not None:
				if not force_new and cached.idle_time(now) < self.session_timeout:
					cached.last_used_at = now
					if focus:
						self.focus.focus_on(cached.target_id, cached.session_id)
					return cached

				self._sessions.pop(target_id, None)
				await self._detach(cached, reason='replaced' if force_new else 'idle')

			connection = await self.engine.attach(target_id)
			now = self._clock()
			session = CDPSession(
				target_id=target_id,
				session_id=uuid7str(),
				connection=connection,
				created_at=now,
				last_used_at=now,
			)
			self._sessions[target_id] = session
			logger.debug(f'🔗 Created session {session.session_id[-4:]} for target {target_id} (pool size {self.size})')

			if self.event_bus is not None:
				self.event_bus.publish(SessionAttachedEvent(target_id=target_id, session_id=session.session_id))
			if focus:
				self.focus.focus_on(session.target_id, session.session_id)
			return session

	async def invalidate(self, target_id: str, reason: str = 'invalidated') -> bool:
		"""Detach and forget the session for target_id. Returns whether there was one."""
		async with self._lock:
			session = self._sessions.pop(target_id, None)
		if session is None:
			return False
		await self._detach(session, reason=reason)
		return True

	async def sweep(self) -> int:
		"""Invalidate every session idle for longer than session_timeout. Returns how many were removed."""
		async with self._lock:
			now = self._clock()
			expired = [s for s in self._sessions.values() if s.idle_time(now) > self.session_timeout]
			for session in expired:
				self._sessions.pop(session.target_id, None)

		for session in expired:
			logger.debug(f'🧹 Session for target {session.target_id} idle for {session.idle_time(now):.1f}s, detaching')
			await self._detach(session, reason='idle')
		return len(expired)

	async def destroy(self) -> None:
		"""Stop the sweep and detach every session. Safe to call repeatedly and from inside the sweep."""
		if self._destroyed:
			return
		self._destroyed = True

		task, self._sweep_task = self._sweep_task, None
		if task is not None and task is not asyncio.current_task() and not task.done():
			task.cancel()
			try:
				await task
			except asyncio.CancelledError:
				pass

		async with self._lock:
			sessions = list(self._sessions.values())
			self._sessions.clear()

		for session in sessions:
			await self._detach(session, reason='destroyed')
		logger.debug(f'🛑 Session pool destroyed, detached {len(sessions)} session(s)')

	async def _sweep_loop(self) -> None:
		while not self._destroyed:
			await asyncio.sleep(self.cleanup_interval)
			if self._destroyed:
				return
			try:
				await self.sweep()
			except Exception as e:
				logger.warning(f'⚠️ Session sweep failed: {type(e).__name__}: {e}')

	async def _detach(self, session: CDPSession, reason: str) -> None:
		try:
			await self.engine.detach(session.connection)
		except Exception as e:
			logger.debug(f'Failed to detach session for target {session.target_id}: {type(e).__name__}: {e}')

		if self.event_bus is not None:
			self.event_bus.publish(
				SessionDetachedEvent(target_id=session.target_id, session_id=session.session_id, reason=reason)
			)

	def _ensure_alive(self) -> None:
		if self._destroyed:
			raise BrowserError(
				'Session pool has been destroyed',
				long_term_memory='The browser session was closed. No further browser actions can run.',
				kind=ErrorKind.UNKNOWN_ERROR,
			)
