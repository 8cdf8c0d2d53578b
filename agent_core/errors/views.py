from enum import Enum
from typing import Any

from pydantic import BaseModel


class ErrorKind(str, Enum):
	"""Closed taxonomy of automation failures."""

	PAGE_CRASH = 'PAGE_CRASH'
	TIMEOUT = 'TIMEOUT'
	NAVIGATION_ERROR = 'NAVIGATION_ERROR'
	ELEMENT_NOT_FOUND = 'ELEMENT_NOT_FOUND'
	NETWORK_ERROR = 'NETWORK_ERROR'
	UNKNOWN_ERROR = 'UNKNOWN_ERROR'


NON_RECOVERABLE_KINDS: frozenset[ErrorKind] = frozenset({ErrorKind.PAGE_CRASH, ErrorKind.UNKNOWN_ERROR})


def is_recoverable_kind(kind: ErrorKind) -> bool:
	return kind not in NON_RECOVERABLE_KINDS


class ErrorRecord(BaseModel):
	"""Serializable classification of a failure, as published on the event bus."""

	kind: ErrorKind
	message: str
	long_term_memory: str | None = None
	short_term_memory: str | None = None
	recoverable: bool


class BrowserError(Exception):
	"""Base class for all browser errors.

	long_term_memory is the text the planner keeps in its context for the rest of the
	task, short_term_memory is shown to it once on the next step only.
	"""

	kind: ErrorKind | None = None

	def __init__(
		self,
		message: str,
		short_term_memory: str | None = None,
		long_term_memory: str | None = None,
		details: dict[str, Any] | None = None,
		kind: ErrorKind | None = None,
	):
		self.message = message
		self.short_term_memory = short_term_memory
		self.long_term_memory = long_term_memory
		self.details = details
		if kind is not None:
			self.kind = kind
		super().__init__(message)

	@property
	def recoverable(self) -> bool:
		return self.kind is not None and is_recoverable_kind(self.kind)

	def to_record(self) -> ErrorRecord:
		kind = self.kind or ErrorKind.UNKNOWN_ERROR
		return ErrorRecord(
			kind=kind,
			message=self.message,
			long_term_memory=self.long_term_memory,
			short_term_memory=self.short_term_memory,
			recoverable=is_recoverable_kind(kind),
		)

	def __str__(self) -> str:
		if self.details:
			return f'{self.message} ({self.details})'
		return self.message

	@classmethod
	def from_error(cls, error: BaseException, long_term_memory: str | None = None) -> 'BrowserError':
		browser_error = cls(str(error) or type(error).__name__, long_term_memory=long_term_memory)
		browser_error.__cause__ = error
		return browser_error


class PageCrashError(BrowserError):
	kind = ErrorKind.PAGE_CRASH

	def __init__(self, message: str = 'Page crashed'):
		super().__init__(
			message,
			short_term_memory=message,
			long_term_memory='The browser page has crashed. The page session will be reconnected before the next action.',
		)


class BrowserTimeoutError(BrowserError):
	kind = ErrorKind.TIMEOUT

	def __init__(self, operation: str, timeout: float | None = None, message: str | None = None):
		if message is None:
			message = f'Operation "{operation}" timed out' + (f' after {timeout}s' if timeout is not None else '')
		self.operation = operation
		self.timeout = timeout
		super().__init__(
			message,
			short_term_memory=f'Operation: {operation}, Timeout: {timeout}s' if timeout is not None else f'Operation: {operation}',
			long_term_memory='The operation timed out. The page might be loading slowly or stuck.',
		)


class NavigationError(BrowserError):
	kind = ErrorKind.NAVIGATION_ERROR

	def __init__(self, url: str, reason: str):
		self.url = url
		self.reason = reason
		super().__init__(
			f'Failed to navigate to {url}: {reason}',
			short_term_memory=f'URL: {url}, Reason: {reason}',
			long_term_memory=f'Navigation failed: {reason}',
		)


class ElementNotFoundError(BrowserError):
	kind = ErrorKind.ELEMENT_NOT_FOUND

	def __init__(self, selector: str):
		self.selector = selector
		super().__init__(
			f'Element {selector} not found',
			short_term_memory=f'Element selector: {selector}',
			long_term_memory='The element you tried to interact with is no longer available on the page. The page might have changed.',
		)


class NetworkError(BrowserError):
	kind = ErrorKind.NETWORK_ERROR

	def __init__(self, message: str):
		super().__init__(
			message,
			short_term_memory=message,
			long_term_memory='The connection to the page was interrupted. The action can be retried.',
		)
