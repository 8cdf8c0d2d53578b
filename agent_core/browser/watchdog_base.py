"""Base class for event-driven watchdogs."""

import inspect
import logging
from collections.abc import Callable
from typing import Any, ClassVar

from bubus import BaseEvent
from pydantic import BaseModel, ConfigDict, PrivateAttr

from agent_core.browser.session_pool import SessionPool
from agent_core.events import EventBus


class BaseWatchdog(BaseModel):
	"""Base class for all browser watchdogs.

	Watchdogs monitor the agent through the event bus and react to specific events.
	Handlers follow the naming convention on_EventClassName(self, event) and are
	subscribed on attach() for each class listed in LISTENS_TO.
	"""

	model_config = ConfigDict(
		arbitrary_types_allowed=True,
		extra='forbid',
		validate_assignment=False,
		revalidate_instances='never',
	)

	# Events this watchdog listens to
	LISTENS_TO: ClassVar[list[type[BaseEvent[Any]]]] = []

	# Events this watchdog emits
	EMITS: ClassVar[list[type[BaseEvent[Any]]]] = []

	event_bus: EventBus
	session_pool: SessionPool

	_unsubscribers: list[Callable[[], None]] = PrivateAttr(default_factory=list)

	@property
	def logger(self) -> logging.Logger:
		return logging.getLogger(type(self).__module__)

	@property
	def is_attached(self) -> bool:
		return bool(self._unsubscribers)

	def attach(self) -> None:
		"""Subscribe every on_EventClassName handler for the classes in LISTENS_TO."""
		if self._unsubscribers:
			return

		listened = {event_class.__name__ for event_class in self.LISTENS_TO}
		for name, _ in inspect.getmembers(type(self), predicate=inspect.isfunction):
			if name.startswith('on_') and name[3:] not in listened:
				raise ValueError(f'{type(self).__name__}.{name} handles an event that is not listed in LISTENS_TO')

		for event_class in self.LISTENS_TO:
			handler = getattr(self, f'on_{event_class.__name__}', None)
			if handler is None:
				self.logger.warning(f'⚠️ {type(self).__name__} lists {event_class.__name__} but has no on_{event_class.__name__}')
				continue
			self._unsubscribers.append(self.event_bus.on(event_class, handler))

		self.logger.debug(f'👀 {type(self).__name__} attached, listening to {sorted(listened)}')

	def detach(self) -> None:
		unsubscribers, self._unsubscribers = self._unsubscribers, []
		for unsubscribe in unsubscribers:
			unsubscribe()
