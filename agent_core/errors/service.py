import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from agent_core.agent.views import ActionResult
from agent_core.errors.views import (
	BrowserError,
	BrowserTimeoutError,
	ErrorKind,
	NavigationError,
	NetworkError,
	PageCrashError,
	is_recoverable_kind,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

# Checked in this order, first match wins
_CLASSIFICATION_RULES: list[tuple[ErrorKind, tuple[str, ...]]] = [
	(ErrorKind.PAGE_CRASH, ('crash',)),
	(ErrorKind.TIMEOUT, ('timeout',)),
	(ErrorKind.NAVIGATION_ERROR, ('navigation', 'navigate')),
	(ErrorKind.ELEMENT_NOT_FOUND, ('not found', 'element')),
	(ErrorKind.NETWORK_ERROR, ('connection', 'network', 'net::')),
]

ELEMENT_NOT_FOUND_MEMORY = (
	'The element you tried to interact with is no longer available on the page. The page might have changed.'
)


def classify_error(error: BaseException) -> ErrorKind:
	"""Map a raw failure onto the error taxonomy by substring matching on its message."""
	if isinstance(error, BrowserError):
		if error.kind is not None:
			return error.kind
		message = error.message
	else:
		message = str(error) or type(error).__name__

	message = message.lower()
	for kind, needles in _CLASSIFICATION_RULES:
		if any(needle in message for needle in needles):
			return kind
	return ErrorKind.UNKNOWN_ERROR


@dataclass
class _ErrorWindow:
	count: int
	last_reset: float


class ErrorHandler:
	"""Classifies failures, retries recoverable ones with exponential backoff and rate limits error kinds.

	One instance belongs to one agent; nothing here is process-global.
	"""

	def __init__(
		self,
		max_retries: int = 3,
		retry_delay: float = 1.0,
		on_error: Callable[[BrowserError], None] | None = None,
		on_recovery: Callable[[BrowserError, int], None] | None = None,
		error_window: float = 60.0,
		max_errors_per_window: int = 10,
		clock: Callable[[], float] = time.monotonic,
	):
		if max_retries < 1:
			raise ValueError(f'max_retries must be at least 1, got {max_retries}')
		self.max_retries = max_retries
		self.retry_delay = retry_delay
		self.on_error = on_error
		self.on_recovery = on_recovery
		self.error_window = error_window
		self.max_errors_per_window = max_errors_per_window
		self._clock = clock
		self._error_counts: dict[str, _ErrorWindow] = {}

	# Classification ------------------------------------------------------------

	def classify(self, error: BaseException) -> ErrorKind:
		return classify_error(error)

	def is_recoverable(self, kind: ErrorKind) -> bool:
		return is_recoverable_kind(kind)

	def create_browser_error(self, error: BaseException) -> BrowserError:
		"""Convert any exception into a classified BrowserError.

		BrowserErrors without a kind are classified in place and returned as-is, so the
		caller still sees the object it raised.
		"""
		kind = self.classify(error)

		if isinstance(error, BrowserError):
			if error.kind is None:
				error.kind = kind
			return error

		message = str(error) or type(error).__name__
		match kind:
			case ErrorKind.PAGE_CRASH:
				browser_error: BrowserError = PageCrashError(message)
			case ErrorKind.TIMEOUT:
				browser_error = BrowserTimeoutError('operation', message=message)
			case ErrorKind.NAVIGATION_ERROR:
				browser_error = NavigationError('unknown', message)
			case ErrorKind.ELEMENT_NOT_FOUND:
				browser_error = BrowserError(
					message,
					short_term_memory=message,
					long_term_memory=ELEMENT_NOT_FOUND_MEMORY,
					kind=ErrorKind.ELEMENT_NOT_FOUND,
				)
			case ErrorKind.NETWORK_ERROR:
				browser_error = NetworkError(message)
			case _:
				browser_error = BrowserError(message, kind=ErrorKind.UNKNOWN_ERROR)

		browser_error.__cause__ = error
		return browser_error

	# Retry ---------------------------------------------------------------------

	async def execute_with_retry(
		self,
		action: Callable[[], Awaitable[T]],
		action_name: str,
		is_recoverable: Callable[[BrowserError], bool] | None = None,
		on_retry: Callable[[BrowserError, int], None] | None = None,
	) -> T:
		"""Run an action, retrying recoverable failures with exponential backoff.

		Args:
			action: Zero-argument coroutine factory, called once per attempt
			action_name: Name used in logs
			is_recoverable: Optional predicate over the classified error. When given, its
				answer replaces the default recoverability of the error kind.
			on_retry: Optional per-call hook, called like on_recovery right before each backoff sleep

		Returns:
			Whatever the first successful attempt returned.

		Raises:
			BrowserError: The classified error of the last attempt, or of the first
				non-recoverable failure.
		"""
		for attempt in range(1, self.max_retries + 1):
			try:
				return await action()
			except Exception as e:
				browser_error = self.create_browser_error(e)
				self._notify_error(browser_error)

				recoverable = is_recoverable(browser_error) if is_recoverable is not None else browser_error.recoverable
				if not recoverable or attempt >= self.max_retries:
					if browser_error is e:
						raise
					raise browser_error from e

				logger.warning(
					f'⚠️ Attempt {attempt}/{self.max_retries} failed for {action_name} '
					f'[{browser_error.kind.value if browser_error.kind else "?"}]: {browser_error.message}'
				)
				self._notify_recovery(browser_error, attempt)
				if on_retry is not None:
					on_retry(browser_error, attempt)

				delay = self.retry_delay * 2 ** (attempt - 1)
				await asyncio.sleep(delay)

		raise AssertionError('unreachable: retry loop exited without returning or raising')

	def _notify_error(self, error: BrowserError) -> None:
		if self.on_error is None:
			return
		try:
			self.on_error(error)
		except Exception as e:
			logger.error(f'❌ on_error callback failed: {type(e).__name__}: {e}', exc_info=True)

	def _notify_recovery(self, error: BrowserError, attempt: int) -> None:
		if self.on_recovery is None:
			return
		try:
			self.on_recovery(error, attempt)
		except Exception as e:
			logger.error(f'❌ on_recovery callback failed: {type(e).__name__}: {e}', exc_info=True)

	# Rate limiting ---------------------------------------------------------------

	def is_error_rate_limit_exceeded(self, error_type: ErrorKind | str) -> bool:
		"""Count one occurrence of error_type and report whether its window is over the limit.

		The window resets lazily on the first check after it expires.
		"""
		key = error_type.value if isinstance(error_type, ErrorKind) else str(error_type)
		now = self._clock()
		window = self._error_counts.get(key)

		if window is None:
			self._error_counts[key] = _ErrorWindow(count=1, last_reset=now)
			return False

		if now - window.last_reset > self.error_window:
			window.count = 1
			window.last_reset = now
			return False

		window.count += 1
		return window.count > self.max_errors_per_window

	def reset_error_count(self, error_type: ErrorKind | str) -> None:
		key = error_type.value if isinstance(error_type, ErrorKind) else str(error_type)
		self._error_counts.pop(key, None)

	# Conversion to ActionResult --------------------------------------------------

	def handle_browser_error(self, error: BrowserError) -> ActionResult:
		error_type = error.kind.value if error.kind else None
		if error.long_term_memory is not None:
			if error.short_term_memory is not None:
				return ActionResult(
					error=error.long_term_memory,
					error_type=error_type,
					extracted_content=error.short_term_memory,
					include_extracted_content_only_once=True,
				)
			return ActionResult(error=error.long_term_memory, error_type=error_type)

		logger.warning(
			'⚠️ A BrowserError was raised without long_term_memory - always set long_term_memory when raising '
			'BrowserError to propagate right messages to the planner.'
		)
		return ActionResult(error=error.message, error_type=error_type)

	def handle_error(self, error: BaseException, context: str | None = None) -> ActionResult:
		browser_error = self.create_browser_error(error)
		if context and browser_error.long_term_memory is None:
			browser_error.long_term_memory = f'Error in {context}: {browser_error.message}'
		return self.handle_browser_error(browser_error)
