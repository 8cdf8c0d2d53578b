import asyncio
import json
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from agent_core.agent.views import ActionResult
from agent_core.browser.events import (
	ActionCompletedEvent,
	ActionFailedEvent,
	ActionRetryEvent,
	ActionStartedEvent,
	NavigationCompleteEvent,
	NavigationStartedEvent,
	ScreenshotEvent,
	SwitchTabEvent,
	TabClosedEvent,
	TabCreatedEvent,
)
from agent_core.browser.focus import FocusTracker
from agent_core.browser.session_pool import SessionPool
from agent_core.browser.views import CDPSession
from agent_core.engine.base import EngineAdapter
from agent_core.errors.service import ErrorHandler
from agent_core.errors.views import BrowserError, ElementNotFoundError, ErrorKind, NavigationError
from agent_core.events import EventBus
from agent_core.tools.registry.service import Registry
from agent_core.tools.registry.views import SpecialActionParameters
from agent_core.tools.views import (
	ClickElementAction,
	CloseTabAction,
	DoneAction,
	ExtractAction,
	InputTextAction,
	NavigateAction,
	NoParamsAction,
	ScreenshotAction,
	ScrollAction,
	SearchAction,
	SendKeysAction,
	SwitchTabAction,
)
from agent_core.utils import time_execution_async

logger = logging.getLogger(__name__)

UNKNOWN_ACTION = 'UNKNOWN_ACTION'
INVALID_PARAMS = 'INVALID_PARAMS'

SEARCH_ENGINES = {
	'duckduckgo': 'https://duckduckgo.com/?q={query}',
	'google': 'https://www.google.com/search?q={query}&udm=14',
	'bing': 'https://www.bing.com/search?q={query}',
}

# key -> (code, windowsVirtualKeyCode)
SPECIAL_KEYS: dict[str, tuple[str, int]] = {
	'Enter': ('Enter', 13),
	'Escape': ('Escape', 27),
	'Tab': ('Tab', 9),
	'Backspace': ('Backspace', 8),
	'Delete': ('Delete', 46),
	'Space': ('Space', 32),
	'PageDown': ('PageDown', 34),
	'PageUp': ('PageUp', 33),
	'End': ('End', 35),
	'Home': ('Home', 36),
	'ArrowLeft': ('ArrowLeft', 37),
	'ArrowUp': ('ArrowUp', 38),
	'ArrowRight': ('ArrowRight', 39),
	'ArrowDown': ('ArrowDown', 40),
}

MODIFIERS = {'Alt': 1, 'Control': 2, 'Ctrl': 2, 'Meta': 4, 'Cmd': 4, 'Shift': 8}


# region - CDP helpers


async def _evaluate(engine: EngineAdapter, cdp_session: CDPSession, expression: str) -> Any:
	"""Run a JS expression in the page and return its value."""
	result = await engine.send(
		cdp_session.connection,
		'Runtime.evaluate',
		{'expression': expression, 'returnByValue': True, 'awaitPromise': True},
	)
	if result.get('exceptionDetails'):
		details = result['exceptionDetails']
		text = details.get('exception', {}).get('description') or details.get('text', 'unknown exception')
		raise BrowserError(f'JavaScript evaluation failed: {text}', details={'expression': expression[:200]})
	return result.get('result', {}).get('value')


async def _wait_for_load(engine: EngineAdapter, cdp_session: CDPSession, timeout: float = 10.0) -> None:
	"""Wait for page load by polling readyState."""

	async def _poll() -> None:
		for _ in range(20):
			state = await _evaluate(engine, cdp_session, 'document.readyState')
			if state in ('complete', 'interactive'):
				return
			await asyncio.sleep(0.5)

	try:
		await asyncio.wait_for(_poll(), timeout=timeout)
	except TimeoutError:
		logger.debug(f'Page on target {cdp_session.target_id} still loading after {timeout}s, continuing')


async def _press_key(engine: EngineAdapter, cdp_session: CDPSession, key: str, modifiers: int = 0) -> None:
	code, key_code = SPECIAL_KEYS.get(key, (f'Key{key.upper()}' if len(key) == 1 and key.isalpha() else key, 0))
	down: dict[str, Any] = {'type': 'keyDown', 'key': key, 'code': code, 'modifiers': modifiers}
	if key_code:
		down['windowsVirtualKeyCode'] = key_code
	elif len(key) == 1 and not modifiers:
		down['text'] = key
	await engine.send(cdp_session.connection, 'Input.dispatchKeyEvent', down)
	await engine.send(
		cdp_session.connection, 'Input.dispatchKeyEvent', {'type': 'keyUp', 'key': key, 'code': code, 'modifiers': modifiers}
	)


async def _navigate(engine: EngineAdapter, cdp_session: CDPSession, event_bus: EventBus, url: str) -> None:
	event_bus.publish(NavigationStartedEvent(target_id=cdp_session.target_id, url=url))
	result = await engine.send(cdp_session.connection, 'Page.navigate', {'url': url})
	if result.get('errorText'):
		event_bus.publish(NavigationCompleteEvent(target_id=cdp_session.target_id, url=url, error_message=result['errorText']))
		raise NavigationError(url, result['errorText'])
	await _wait_for_load(engine, cdp_session)
	event_bus.publish(NavigationCompleteEvent(target_id=cdp_session.target_id, url=url))


async def switch_to_target(
	target_id: str,
	session_pool: SessionPool,
	event_bus: EventBus,
) -> CDPSession:
	"""Focus a tab: acquire its session with focus, bring it to front and announce the switch."""
	cdp_session = await session_pool.acquire(target_id, focus=True)
	await session_pool.engine.activate_target(cdp_session.target_id)
	event_bus.publish(SwitchTabEvent(target_id=cdp_session.target_id))
	return cdp_session


# endregion


@dataclass
class _DispatchState:
	attempts: int = 0
	force_new: bool = False
	rate_limited: bool = False
	target_id: str | None = None


class Tools:
	def __init__(
		self,
		session_pool: SessionPool,
		event_bus: EventBus,
		error_handler: ErrorHandler,
		exclude_actions: list[str] | None = None,
	):
		self.registry = Registry(exclude_actions if exclude_actions is not None else [])
		self.session_pool = session_pool
		self.event_bus = event_bus
		self.error_handler = error_handler

		self._register_default_actions()

	@property
	def engine(self) -> EngineAdapter:
		return self.session_pool.engine

	@property
	def focus(self) -> FocusTracker:
		return self.session_pool.focus

	def _register_default_actions(self) -> None:
		"""Register all default browser actions"""

		# Basic Navigation Actions
		@self.registry.action('Search the query in a search engine.', param_model=SearchAction)
		async def search(params: SearchAction, cdp_session: CDPSession, engine: EngineAdapter, event_bus: EventBus):
			search_engine = params.engine.lower()
			if search_engine not in SEARCH_ENGINES:
				return ActionResult(error=f'Unsupported search engine: {params.engine}. Options: duckduckgo, google, bing')

			search_url = SEARCH_ENGINES[search_engine].format(query=urllib.parse.quote_plus(params.query))
			await _navigate(engine, cdp_session, event_bus, search_url)

			memory = f"Searched {params.engine.title()} for '{params.query}'"
			logger.info(f'🔍  {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		@self.registry.action('Navigate to URL, optionally in a new tab.', param_model=NavigateAction)
		async def navigate(
			params: NavigateAction,
			cdp_session: CDPSession,
			engine: EngineAdapter,
			session_pool: SessionPool,
			event_bus: EventBus,
		):
			if params.new_tab:
				target_id = await engine.create_target(params.url)
				event_bus.publish(TabCreatedEvent(target_id=target_id, url=params.url))
				new_session = await session_pool.acquire(target_id, focus=True)
				await _wait_for_load(engine, new_session)
				memory = f'Opened new tab with URL {params.url}'
				msg = f'🔗  Opened new tab with url {params.url}'
			else:
				await _navigate(engine, cdp_session, event_bus, params.url)
				memory = f'Navigated to {params.url}'
				msg = f'🔗 {memory}'

			logger.info(msg)
			return ActionResult(extracted_content=msg, long_term_memory=memory)

		@self.registry.action('Go back', param_model=NoParamsAction)
		async def go_back(_: NoParamsAction, cdp_session: CDPSession, engine: EngineAdapter):
			await _evaluate(engine, cdp_session, 'window.history.back()')
			await _wait_for_load(engine, cdp_session)
			memory = 'Navigated back'
			logger.info(f'🔙  {memory}')
			return ActionResult(extracted_content=memory)

		@self.registry.action('Wait for x seconds.')
		async def wait(seconds: int = 3):
			actual_seconds = min(max(seconds, 0), 30)
			memory = f'Waited for {seconds} seconds'
			logger.info(f'🕒 waited for {seconds} second{"" if seconds == 1 else "s"}')
			await asyncio.sleep(actual_seconds)
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		# Element Interaction Actions
		@self.registry.action('Click element by CSS selector.', param_model=ClickElementAction)
		async def click(params: ClickElementAction, cdp_session: CDPSession, engine: EngineAdapter):
			pos = await _evaluate(
				engine,
				cdp_session,
				f"""
				(() => {{
					const el = document.querySelector({json.dumps(params.selector)});
					if (!el) return null;
					el.scrollIntoView({{block: 'center', inline: 'center'}});
					const rect = el.getBoundingClientRect();
					return {{ x: rect.x + rect.width / 2, y: rect.y + rect.height / 2 }};
				}})()
				""",
			)
			if not pos:
				raise ElementNotFoundError(params.selector)

			x, y = pos['x'], pos['y']
			for event_type in ('mousePressed', 'mouseReleased'):
				await engine.send(
					cdp_session.connection,
					'Input.dispatchMouseEvent',
					{'type': event_type, 'x': x, 'y': y, 'button': 'left', 'clickCount': 1},
				)

			memory = f'Clicked element {params.selector}'
			logger.info(f'🖱️ {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory, metadata={'click_x': x, 'click_y': y})

		@self.registry.action('Input text into an element by CSS selector.', param_model=InputTextAction)
		async def input_text(params: InputTextAction, cdp_session: CDPSession, engine: EngineAdapter):
			found = await _evaluate(
				engine,
				cdp_session,
				f"""
				(() => {{
					const el = document.querySelector({json.dumps(params.selector)});
					if (!el) return false;
					el.focus();
					if ({json.dumps(params.clear)} && 'value' in el) el.value = '';
					return true;
				}})()
				""",
			)
			if not found:
				raise ElementNotFoundError(params.selector)

			for char in params.text:
				await engine.send(cdp_session.connection, 'Input.dispatchKeyEvent', {'type': 'keyDown', 'text': char, 'key': char})
				await engine.send(cdp_session.connection, 'Input.dispatchKeyEvent', {'type': 'keyUp', 'key': char})
			if params.submit:
				await _press_key(engine, cdp_session, 'Enter')

			memory = f"Typed '{params.text}' into {params.selector}" + (' and submitted' if params.submit else '')
			logger.info(f'⌨️  {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		@self.registry.action('Scroll the page by pages.', param_model=ScrollAction)
		async def scroll(params: ScrollAction, cdp_session: CDPSession, engine: EngineAdapter):
			try:
				viewport_height = int(await _evaluate(engine, cdp_session, 'window.innerHeight') or 1000)
			except BrowserError as e:
				viewport_height = 1000  # Fallback to 1000px
				logger.debug(f'Failed to get viewport height, using fallback 1000px: {e}')

			pixels = int(viewport_height * params.pages)
			await engine.send(
				cdp_session.connection,
				'Input.dispatchMouseEvent',
				{'type': 'mouseWheel', 'x': 400, 'y': 300, 'deltaX': 0, 'deltaY': pixels if params.down else -pixels},
			)

			direction = 'down' if params.down else 'up'
			memory = f'Scrolled {direction} {params.pages} pages'
			logger.info(f'🔍 {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		@self.registry.action('Send keys or shortcuts, e.g. Escape, Enter, Control+a.', param_model=SendKeysAction)
		async def send_keys(params: SendKeysAction, cdp_session: CDPSession, engine: EngineAdapter):
			*modifier_names, key = params.keys.split('+')
			unknown = [m for m in modifier_names if m not in MODIFIERS]
			if unknown or not key:
				return ActionResult(error=f'Unsupported key combination: {params.keys}')

			modifiers = 0
			for name in modifier_names:
				modifiers |= MODIFIERS[name]
			await _press_key(engine, cdp_session, key, modifiers)

			memory = f'Sent keys: {params.keys}'
			logger.info(f'⌨️  {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		# Tab Management Actions
		@self.registry.action('Switch to the tab with the given target id.', param_model=SwitchTabAction)
		async def switch_tab(params: SwitchTabAction, session_pool: SessionPool, event_bus: EventBus):
			await switch_to_target(params.target_id, session_pool, event_bus)
			memory = f'Switched to tab #{params.target_id[-4:]}'
			logger.info(f'🔄  {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		@self.registry.action('Close the tab with the given target id.', param_model=CloseTabAction)
		async def close_tab(
			params: CloseTabAction,
			engine: EngineAdapter,
			session_pool: SessionPool,
			focus: FocusTracker,
			event_bus: EventBus,
		):
			target_id = await engine.resolve_target_id(params.target_id)
			focused_id = await engine.resolve_target_id(focus.resolve_target_id())
			await session_pool.invalidate(target_id, reason='tab_closed')
			await engine.close_target(target_id)
			event_bus.publish(TabClosedEvent(target_id=target_id))

			if focused_id == target_id:
				remaining = [t for t in await engine.list_targets() if t.target_type == 'page' and t.target_id != target_id]
				if remaining:
					await switch_to_target(remaining[-1].target_id, session_pool, event_bus)
				else:
					focus.clear()

			memory = f'Closed tab #{target_id[-4:]}'
			logger.info(f'🗑️  {memory}')
			return ActionResult(extracted_content=memory, long_term_memory=memory)

		# Content Actions
		@self.registry.action('Extract the visible text of the page or of one element.', param_model=ExtractAction)
		async def extract(params: ExtractAction, cdp_session: CDPSession, engine: EngineAdapter):
			selector_js = json.dumps(params.selector) if params.selector else 'null'
			text = await _evaluate(
				engine,
				cdp_session,
				f"""
				(() => {{
					const selector = {selector_js};
					const el = selector ? document.querySelector(selector) : document.body;
					return el ? el.innerText : null;
				}})()
				""",
			)
			if text is None:
				if params.selector:
					raise ElementNotFoundError(params.selector)
				text = ''

			truncated = len(text) > params.max_chars
			content = text[: params.max_chars]
			where = params.selector or 'page'
			memory = f'Extracted {len(content)} characters from {where}' + (' (truncated)' if truncated else '')
			logger.info(f'📄 {memory}')
			return ActionResult(
				extracted_content=content,
				include_extracted_content_only_once=True,
				long_term_memory=memory,
			)

		@self.registry.action('Take a screenshot of the current page.', param_model=ScreenshotAction)
		async def screenshot(params: ScreenshotAction, cdp_session: CDPSession, engine: EngineAdapter, event_bus: EventBus):
			result = await engine.send(
				cdp_session.connection,
				'Page.captureScreenshot',
				{'format': 'png', 'captureBeyondViewport': params.full_page},
			)
			data = result.get('data') if result else None
			if not data:
				raise BrowserError('Screenshot result missing data')

			size_bytes = len(data) * 3 // 4
			event_bus.publish(ScreenshotEvent(target_id=cdp_session.target_id, full_page=params.full_page, size_bytes=size_bytes))
			memory = 'Took screenshot'
			logger.info(f'📸 {memory} ({size_bytes} bytes)')
			return ActionResult(extracted_content=memory, metadata={'screenshot': data})

		@self.registry.action('Complete task.', param_model=DoneAction)
		async def done(params: DoneAction):
			len_text = len(params.text)
			len_max_memory = 100
			memory = f'Task completed: {params.success} - {params.text[:len_max_memory]}'
			if len_text > len_max_memory:
				memory += f' - {len_text - len_max_memory} more characters'

			return ActionResult(
				is_done=True,
				success=params.success,
				extracted_content=params.text,
				long_term_memory=memory,
			)

	# Register ---------------------------------------------------------------

	def action(self, description: str, **kwargs):
		"""Decorator for registering custom actions

		@param description: Describe the planner what the function does (better description == better function calling)
		"""
		return self.registry.action(description, **kwargs)

	def exclude_action(self, action_name: str) -> None:
		self.registry.exclude_action(action_name)

	# Dispatch ---------------------------------------------------------------

	@time_execution_async('--dispatch')
	async def dispatch(self, action_name: str, params: dict[str, Any] | None = None) -> ActionResult:
		"""Validate, run and report one action. Never raises for action failures.

		Exactly one ActionCompletedEvent or ActionFailedEvent is published per call.
		"""
		params = params or {}

		action = self.registry.get_action(action_name)
		if action is None:
			available = ', '.join(sorted(self.registry.action_names))
			msg = f'Unknown action: {action_name}. Available actions: {available}'
			logger.warning(f'⚠️ {msg}')
			return self._fail(action_name, ActionResult(error=msg, error_type=UNKNOWN_ACTION))

		try:
			validated_params = action.param_model.model_validate(params)
		except ValidationError as e:
			msg = f'Invalid parameters {params} for action {action_name}: {e.error_count()} validation error(s): ' + '; '.join(
				f'{".".join(str(loc) for loc in err["loc"]) or "params"}: {err["msg"]}' for err in e.errors()
			)
			logger.warning(f'⚠️ {msg}')
			return self._fail(action_name, ActionResult(error=msg, error_type=INVALID_PARAMS))

		self.event_bus.publish(ActionStartedEvent(action_name=action_name, params=params))
		state = _DispatchState(target_id=self.focus.target_id)

		async def run_once() -> ActionResult:
			state.attempts += 1
			cdp_session = None
			if action.needs_session:
				cdp_session = await self.session_pool.acquire(force_new=state.force_new)
				state.force_new = False
				state.target_id = cdp_session.target_id

			special_context = SpecialActionParameters(
				cdp_session=cdp_session,
				engine=self.engine,
				session_pool=self.session_pool,
				focus=self.focus,
				event_bus=self.event_bus,
			)
			return self._normalize_result(await self.registry.execute_action(action, validated_params, special_context))

		def should_retry(error: BrowserError) -> bool:
			kind = error.kind or ErrorKind.UNKNOWN_ERROR
			if self.error_handler.is_error_rate_limit_exceeded(kind):
				state.rate_limited = True
				logger.warning(f'⚠️ Too many {kind.value} errors in the last {self.error_handler.error_window:.0f}s, not retrying')
				return False
			return error.recoverable

		def before_retry(error: BrowserError, attempt: int) -> None:
			# A dropped connection leaves the cached session unusable
			if error.kind == ErrorKind.NETWORK_ERROR:
				state.force_new = True
			self.event_bus.publish(
				ActionRetryEvent(
					action_name=action_name,
					attempt=attempt,
					error=error.message,
					error_type=error.kind.value if error.kind else None,
				)
			)

		try:
			result = await self.error_handler.execute_with_retry(
				run_once,
				action_name,
				is_recoverable=should_retry,
				on_retry=before_retry,
			)
		except BrowserError as e:
			kind = e.kind.value if e.kind else ErrorKind.UNKNOWN_ERROR.value
			logger.error(f'❌ Action {action_name} failed with {kind} after {state.attempts} attempt(s): {e}')
			result = self.error_handler.handle_browser_error(e)
			return self._fail(action_name, result, target_id=state.target_id, rate_limited=state.rate_limited)

		if result.error is not None:
			logger.info(f'❌ Action {action_name} returned an error: {result.error}')
			return self._fail(action_name, result, target_id=state.target_id)

		self.event_bus.publish(
			ActionCompletedEvent(
				action_name=action_name,
				extracted_content=result.extracted_content,
				is_done=result.is_done,
				attempts=state.attempts,
			)
		)
		return result

	@staticmethod
	def _normalize_result(result: Any) -> ActionResult:
		if isinstance(result, str):
			return ActionResult(extracted_content=result)
		elif isinstance(result, ActionResult):
			return result
		elif result is None:
			return ActionResult()
		raise TypeError(f'Invalid action result type: {type(result).__name__} of {result!r}')

	def _fail(
		self,
		action_name: str,
		result: ActionResult,
		target_id: str | None = None,
		rate_limited: bool = False,
	) -> ActionResult:
		self.event_bus.publish(
			ActionFailedEvent(
				action_name=action_name,
				error=result.error or 'Unknown error',
				error_type=result.error_type,
				target_id=target_id,
				rate_limited=rate_limited,
			)
		)
		return result

	def get_prompt_description(self) -> str:
		return self.registry.registry.get_prompt_description()

