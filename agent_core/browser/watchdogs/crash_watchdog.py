"""Crash watchdog: reconnects crashed targets and gives up after repeated crashes."""

from typing import Any, ClassVar

from bubus import BaseEvent
from pydantic import PrivateAttr

from agent_core.browser.events import (
	ActionFailedEvent,
	BrowserErrorEvent,
	BrowserStoppedEvent,
	TabClosedEvent,
	TargetCrashedEvent,
)
from agent_core.browser.watchdog_base import BaseWatchdog
from agent_core.errors.views import ErrorKind


class CrashWatchdog(BaseWatchdog):
	"""Invalidates the session of a target whose action failed with PAGE_CRASH.

	The next acquire for that target attaches a fresh session. After more than
	max_recovery_attempts crashes of one target it stops recovering and reports a
	BrowserErrorEvent instead.
	"""

	LISTENS_TO: ClassVar[list[type[BaseEvent[Any]]]] = [ActionFailedEvent, TabClosedEvent, BrowserStoppedEvent]
	EMITS: ClassVar[list[type[BaseEvent[Any]]]] = [TargetCrashedEvent, BrowserErrorEvent]

	max_recovery_attempts: int = 3

	_recovery_attempts: dict[str, int] = PrivateAttr(default_factory=dict)

	def recovery_attempts(self, target_id: str) -> int:
		return self._recovery_attempts.get(target_id, 0)

	async def on_ActionFailedEvent(self, event: ActionFailedEvent) -> None:
		if event.error_type != ErrorKind.PAGE_CRASH.value:
			return

		target_id = event.target_id or self.session_pool.focus.resolve_target_id()
		attempts = self._recovery_attempts.get(target_id, 0) + 1
		self._recovery_attempts[target_id] = attempts

		if attempts > self.max_recovery_attempts:
			message = f'Target {target_id} crashed {attempts} times, giving up on recovery'
			self.logger.error(f'💥 {message}')
			self.event_bus.publish(
				BrowserErrorEvent(
					error_type='TargetCrash',
					message=message,
					details={'target_id': target_id, 'attempts': attempts, 'action': event.action_name},
				)
			)
			return

		self.logger.warning(
			f'💥 Target {target_id} crashed during {event.action_name}, reconnecting '
			f'(attempt {attempts}/{self.max_recovery_attempts})'
		)
		await self.session_pool.invalidate(target_id, reason='crashed')
		self.event_bus.publish(TargetCrashedEvent(target_id=target_id, error=event.error, recovery_attempt=attempts))

	def on_TabClosedEvent(self, event: TabClosedEvent) -> None:
		self._recovery_attempts.pop(event.target_id, None)

	def on_BrowserStoppedEvent(self, event: BrowserStoppedEvent) -> None:
		self._recovery_attempts.clear()
