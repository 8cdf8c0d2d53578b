from agent_core.errors.service import ErrorHandler, classify_error
from agent_core.errors.views import (
	BrowserError,
	BrowserTimeoutError,
	ElementNotFoundError,
	ErrorKind,
	ErrorRecord,
	NavigationError,
	NetworkError,
	PageCrashError,
)

__all__ = [
	'BrowserError',
	'BrowserTimeoutError',
	'ElementNotFoundError',
	'ErrorHandler',
	'ErrorKind',
	'ErrorRecord',
	'NavigationError',
	'NetworkError',
	'PageCrashError',
	'classify_error',
]
