import logging
from typing import Any

from agent_core.browser.events import AgentFocusChangedEvent
from agent_core.browser.views import MAIN_TARGET_ID, AgentFocus
from agent_core.events import EventBus

logger = logging.getLogger(__name__)


class FocusTracker:
	"""Holds the agent's current focus.

	Written only by the session pool when it acquires with focus=True and by explicit
	tab switches. Writing the focus never touches the pool.
	"""

	def __init__(self, initial: AgentFocus | None = None, event_bus: EventBus | None = None):
		self._focus: AgentFocus | None = initial
		self.event_bus = event_bus

	@property
	def current(self) -> AgentFocus | None:
		return self._focus

	@property
	def target_id(self) -> str | None:
		return self._focus.target_id if self._focus else None

	@property
	def session_id(self) -> str | None:
		return self._focus.session_id if self._focus else None

	@property
	def page(self) -> Any:
		return self._focus.page if self._focus else None

	def resolve_target_id(self, default: str = MAIN_TARGET_ID) -> str:
		return self.target_id or default

	def set(self, focus: AgentFocus | None) -> AgentFocus | None:
		"""Replace the focus and return the previous value."""
		previous, self._focus = self._focus, focus

		if focus is None:
			return previous

		changed = previous is None or (previous.target_id, previous.session_id) != (focus.target_id, focus.session_id)
		if changed:
			logger.debug(
				f'🎯 Focus {previous.target_id if previous else None} -> {focus.target_id} '
				f'(session {focus.session_id})'
			)
			if self.event_bus is not None:
				self.event_bus.publish(
					AgentFocusChangedEvent(
						target_id=focus.target_id,
						session_id=focus.session_id,
						previous_target_id=previous.target_id if previous else None,
						previous_session_id=previous.session_id if previous else None,
					)
				)
		return previous

	def focus_on(self, target_id: str, session_id: str | None = None, page: Any = None) -> AgentFocus:
		"""Point the focus at target_id. The page handle is kept while the target stays the same."""
		if page is None and self._focus is not None and self._focus.target_id == target_id:
			page = self._focus.page
		focus = AgentFocus(target_id=target_id, session_id=session_id, page=page)
		self.set(focus)
		return focus

	def clear(self) -> AgentFocus | None:
		return self.set(None)
