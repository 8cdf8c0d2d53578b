import pytest
from pydantic import ValidationError

from agent_core.browser.events import AgentFocusChangedEvent
from agent_core.browser.focus import FocusTracker
from agent_core.browser.views import AgentFocus


def focus_events(collected):
	return [e for e in collected if isinstance(e, AgentFocusChangedEvent)]


def test_starts_empty_and_resolves_to_main(event_bus):
	focus = FocusTracker(event_bus=event_bus)

	assert focus.current is None
	assert focus.target_id is None
	assert focus.session_id is None
	assert focus.resolve_target_id() == 'main'
	assert focus.resolve_target_id(default='page-9') == 'page-9'


def test_initial_focus_with_page_handle():
	page = object()
	focus = FocusTracker(initial=AgentFocus(page=page))

	assert focus.target_id == 'main'
	assert focus.page is page


def test_focus_change_publishes_event(event_bus, collected):
	focus = FocusTracker(event_bus=event_bus)

	focus.focus_on('page-1', 'session-a')
	focus.focus_on('page-2', 'session-b')

	events = focus_events(collected)
	assert [(e.previous_target_id, e.target_id) for e in events] == [(None, 'page-1'), ('page-1', 'page-2')]
	assert events[1].previous_session_id == 'session-a'
	assert events[1].session_id == 'session-b'


def test_same_focus_publishes_nothing(event_bus, collected):
	focus = FocusTracker(event_bus=event_bus)

	focus.focus_on('page-1', 'session-a')
	focus.focus_on('page-1', 'session-a')

	assert len(focus_events(collected)) == 1


def test_new_session_on_same_target_is_a_change(event_bus, collected):
	focus = FocusTracker(event_bus=event_bus)

	focus.focus_on('page-1', 'session-a')
	focus.focus_on('page-1', 'session-b')

	assert len(focus_events(collected)) == 2


def test_page_kept_on_same_target_and_dropped_on_switch():
	page = object()
	focus = FocusTracker(initial=AgentFocus(target_id='page-1', page=page))

	focus.focus_on('page-1', 'session-a')
	assert focus.page is page

	focus.focus_on('page-2', 'session-b')
	assert focus.page is None


def test_set_returns_previous_value():
	focus = FocusTracker()
	first = AgentFocus(target_id='page-1')

	assert focus.set(first) is None
	assert focus.set(AgentFocus(target_id='page-2')) is first


def test_clear_publishes_nothing(event_bus, collected):
	focus = FocusTracker(event_bus=event_bus)
	focus.focus_on('page-1')

	previous = focus.clear()

	assert previous.target_id == 'page-1'
	assert focus.current is None
	assert len(focus_events(collected)) == 1


def test_focus_value_is_immutable():
	value = AgentFocus(target_id='page-1', session_id='session-a')

	with pytest.raises(ValidationError):
		value.target_id = 'page-2'


async def test_writing_focus_does_not_touch_the_pool(agent, fake_engine):
	agent.focus.focus_on('page-2', 'made-up-session')

	assert fake_engine.attach_calls == []
	assert agent.session_pool.size == 0

	# The next session-backed action resolves against the focused target
	result = await agent.dispatch('scroll', {'down': True})
	assert result.success
	assert fake_engine.attach_calls == ['page-2']
	assert agent.focus.session_id == agent.session_pool.get('page-2').session_id
