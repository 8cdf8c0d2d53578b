"""
Tests for the synchronous event bus: delivery order, unsubscribe, isolation of failing
subscribers, async handlers and bounded history.
"""

import asyncio
import logging

import pytest

from agent_core.browser.events import (
	ActionCompletedEvent,
	ActionStartedEvent,
	BrowserStoppedEvent,
	TabClosedEvent,
)
from agent_core.events import EventBus


class TestDelivery:
	def test_subscribers_called_in_registration_order(self, event_bus):
		calls = []
		event_bus.on(TabClosedEvent, lambda e: calls.append('first'))
		event_bus.on('*', lambda e: calls.append('wildcard'))
		event_bus.on('TabClosedEvent', lambda e: calls.append('third'))

		event_bus.publish(TabClosedEvent(target_id='page-1'))

		assert calls == ['first', 'wildcard', 'third']

	def test_publish_delivers_before_returning(self, event_bus):
		seen = []
		event_bus.on(TabClosedEvent, seen.append)

		event = event_bus.publish(TabClosedEvent(target_id='page-1'))

		assert seen == [event]

	def test_only_matching_type_is_delivered(self, event_bus):
		seen = []
		event_bus.on(ActionStartedEvent, seen.append)

		event_bus.publish(TabClosedEvent(target_id='page-1'))
		event_bus.publish(ActionStartedEvent(action_name='click'))

		assert [e.event_type for e in seen] == ['ActionStartedEvent']

	def test_wildcard_receives_everything(self, event_bus, collected):
		event_bus.publish(TabClosedEvent(target_id='page-1'))
		event_bus.publish(BrowserStoppedEvent())

		assert [e.event_type for e in collected] == ['TabClosedEvent', 'BrowserStoppedEvent']

	def test_event_type_is_class_name(self):
		assert ActionCompletedEvent(action_name='done').event_type == 'ActionCompletedEvent'

	def test_no_replay_for_late_subscribers(self, event_bus):
		event_bus.publish(TabClosedEvent(target_id='page-1'))

		seen = []
		event_bus.on(TabClosedEvent, seen.append)

		assert seen == []

	def test_subscriber_added_during_publish_sees_only_later_events(self, event_bus):
		late = []

		def add_late_subscriber(event):
			event_bus.on(TabClosedEvent, late.append)

		event_bus.once(TabClosedEvent, add_late_subscriber)
		event_bus.publish(TabClosedEvent(target_id='page-1'))
		assert late == []

		event_bus.publish(TabClosedEvent(target_id='page-2'))
		assert [e.target_id for e in late] == ['page-2']

	def test_rejects_unknown_pattern_types(self, event_bus):
		with pytest.raises(TypeError):
			event_bus.on(42, print)
		with pytest.raises(TypeError):
			event_bus.on(TabClosedEvent, 'not callable')


class TestUnsubscribe:
	def test_unsubscribe_removes_only_that_registration(self, event_bus):
		calls = []

		def handler(event):
			calls.append(event.target_id)

		unsubscribe_first = event_bus.on(TabClosedEvent, handler)
		event_bus.on(TabClosedEvent, handler)

		unsubscribe_first()
		event_bus.publish(TabClosedEvent(target_id='page-1'))

		assert calls == ['page-1']

	def test_unsubscribe_is_idempotent(self, event_bus):
		unsubscribe = event_bus.on(TabClosedEvent, print)
		event_bus.on(TabClosedEvent, print)

		unsubscribe()
		unsubscribe()

		assert event_bus.listener_count(TabClosedEvent) == 1

	def test_unsubscribe_during_publish_skips_removed_handler(self, event_bus):
		calls = []
		unsubscribers = {}

		def first(event):
			calls.append('first')
			unsubscribers['second']()

		event_bus.on(TabClosedEvent, first)
		unsubscribers['second'] = event_bus.on(TabClosedEvent, lambda e: calls.append('second'))

		event_bus.publish(TabClosedEvent(target_id='page-1'))

		assert calls == ['first']

	def test_off_by_handler(self, event_bus):
		seen = []
		event_bus.on('TabClosedEvent', seen.append)

		assert event_bus.off(TabClosedEvent, seen.append) is True
		assert event_bus.off(TabClosedEvent, seen.append) is False
		event_bus.publish(TabClosedEvent(target_id='page-1'))
		assert seen == []

	def test_once_fires_a_single_time(self, event_bus):
		seen = []
		event_bus.once(TabClosedEvent, seen.append)

		event_bus.publish(TabClosedEvent(target_id='page-1'))
		event_bus.publish(TabClosedEvent(target_id='page-2'))

		assert [e.target_id for e in seen] == ['page-1']
		assert event_bus.listener_count(TabClosedEvent) == 0

	def test_listener_count_and_remove_all(self, event_bus):
		event_bus.on(TabClosedEvent, print)
		event_bus.on(TabClosedEvent, print)
		event_bus.on('*', print)

		assert event_bus.listener_count() == 3
		assert event_bus.listener_count('TabClosedEvent') == 2

		event_bus.remove_all_listeners(TabClosedEvent)
		assert event_bus.listener_count() == 1

		event_bus.remove_all_listeners()
		assert event_bus.listener_count() == 0


class TestFailingSubscribers:
	def test_raising_subscriber_is_logged_and_others_still_run(self, event_bus, caplog):
		calls = []

		def broken(event):
			raise RuntimeError('subscriber exploded')

		event_bus.on(TabClosedEvent, broken)
		event_bus.on(TabClosedEvent, lambda e: calls.append('after'))

		with caplog.at_level(logging.ERROR, logger='agent_core.events'):
			event_bus.publish(TabClosedEvent(target_id='page-1'))

		assert calls == ['after']
		assert any('subscriber exploded' in record.getMessage() for record in caplog.records)

	async def test_async_handler_runs_in_background(self, event_bus):
		seen = []

		async def handler(event):
			await asyncio.sleep(0)
			seen.append(event.target_id)

		event_bus.on(TabClosedEvent, handler)
		event_bus.publish(TabClosedEvent(target_id='page-1'))
		assert seen == []

		await event_bus.wait_until_idle()
		assert seen == ['page-1']

	async def test_async_handler_failure_is_logged(self, event_bus, caplog):
		async def handler(event):
			raise ValueError('async subscriber exploded')

		event_bus.on(TabClosedEvent, handler)

		with caplog.at_level(logging.ERROR, logger='agent_core.events'):
			event_bus.publish(TabClosedEvent(target_id='page-1'))
			await event_bus.wait_until_idle()
			await asyncio.sleep(0)

		assert any('async subscriber exploded' in record.getMessage() for record in caplog.records)

	def test_async_handler_without_running_loop_is_dropped(self, caplog):
		bus = EventBus(name='NoLoopBus')

		async def handler(event):
			raise AssertionError('should never run')

		bus.on(TabClosedEvent, handler)

		with caplog.at_level(logging.WARNING, logger='agent_core.events'):
			bus.publish(TabClosedEvent(target_id='page-1'))

		assert any('no event loop is running' in record.getMessage() for record in caplog.records)


class TestHistory:
	def test_history_is_bounded(self):
		bus = EventBus(history_limit=100)

		for i in range(150):
			bus.publish(TabClosedEvent(target_id=f'page-{i}'))

		assert len(bus.event_history) == 100
		assert bus.event_history[0].target_id == 'page-50'

	def test_recent_events_and_by_type(self, event_bus):
		event_bus.publish(TabClosedEvent(target_id='page-1'))
		event_bus.publish(ActionStartedEvent(action_name='click'))
		event_bus.publish(TabClosedEvent(target_id='page-2'))

		assert [e.event_type for e in event_bus.get_recent_events(2)] == ['ActionStartedEvent', 'TabClosedEvent']
		assert [e.target_id for e in event_bus.get_events_by_type(TabClosedEvent)] == ['page-1', 'page-2']
		assert [e.target_id for e in event_bus.get_events_by_type('TabClosedEvent', limit=1)] == ['page-2']
		assert event_bus.get_recent_events(0) == []

		event_bus.clear_history()
		assert event_bus.get_recent_events() == []


class TestExpect:
	async def test_expect_resolves_on_next_matching_event(self, event_bus):
		async def publish_later():
			await asyncio.sleep(0.01)
			event_bus.publish(TabClosedEvent(target_id='page-1'))
			event_bus.publish(TabClosedEvent(target_id='page-2'))

		task = asyncio.create_task(publish_later())
		event = await event_bus.expect(TabClosedEvent, timeout=1.0, predicate=lambda e: e.target_id == 'page-2')
		await task

		assert event.target_id == 'page-2'
		assert event_bus.listener_count() == 0

	async def test_expect_times_out(self, event_bus):
		with pytest.raises(TimeoutError):
			await event_bus.expect(TabClosedEvent, timeout=0.01)

		assert event_bus.listener_count() == 0
