"""Event definitions published on the agent's event bus.

Every event is a bubus BaseEvent: event_type is the class name, event_id and
event_created_at are filled in on construction. Host UIs subscribe by class or by
class name.
"""

from typing import Any

from bubus import BaseEvent
from pydantic import Field

# region - Browser lifecycle


class BrowserConnectedEvent(BaseEvent[None]):
	"""The engine connection is up."""

	cdp_url: str | None = None


class BrowserStoppedEvent(BaseEvent[None]):
	"""The agent was closed. All sessions are gone."""

	reason: str | None = None


class BrowserErrorEvent(BaseEvent[None]):
	"""A failure the core gave up on."""

	error_type: str
	message: str
	details: dict[str, Any] = Field(default_factory=dict)


# endregion
# region - Navigation and tabs


class NavigationStartedEvent(BaseEvent[None]):
	target_id: str
	url: str


class NavigationCompleteEvent(BaseEvent[None]):
	target_id: str
	url: str
	error_message: str | None = None


class TabCreatedEvent(BaseEvent[None]):
	target_id: str
	url: str


class TabClosedEvent(BaseEvent[None]):
	target_id: str


class SwitchTabEvent(BaseEvent[None]):
	"""Focus moved to another tab by an explicit switch."""

	target_id: str


class AgentFocusChangedEvent(BaseEvent[None]):
	target_id: str
	session_id: str | None = None
	previous_target_id: str | None = None
	previous_session_id: str | None = None


class ScreenshotEvent(BaseEvent[None]):
	target_id: str
	full_page: bool = False
	size_bytes: int = 0


class TargetCrashedEvent(BaseEvent[None]):
	target_id: str
	error: str
	recovery_attempt: int = 1


# endregion
# region - Session pool


class SessionAttachedEvent(BaseEvent[None]):
	target_id: str
	session_id: str


class SessionDetachedEvent(BaseEvent[None]):
	target_id: str
	session_id: str
	reason: str = 'invalidated'  # 'idle', 'invalidated', 'replaced', 'destroyed'


# endregion
# region - Actions


class ActionStartedEvent(BaseEvent[None]):
	action_name: str
	params: dict[str, Any] = Field(default_factory=dict)


class ActionCompletedEvent(BaseEvent[None]):
	action_name: str
	extracted_content: str | None = None
	is_done: bool = False
	attempts: int = 1


class ActionFailedEvent(BaseEvent[None]):
	"""Exactly one is published for every dispatch that does not succeed."""

	action_name: str
	error: str
	error_type: str | None = None
	target_id: str | None = None
	rate_limited: bool = False


class ActionRetryEvent(BaseEvent[None]):
	action_name: str
	attempt: int
	error: str
	error_type: str | None = None


# endregion
