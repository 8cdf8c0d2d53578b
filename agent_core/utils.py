import asyncio
import logging
import time
from collections.abc import Callable, Coroutine
from functools import wraps
from typing import Any, ParamSpec, TypeVar

logger = logging.getLogger(__name__)

P = ParamSpec('P')
R = TypeVar('R')
T = TypeVar('T')


def time_execution_async(
	additional_text: str = '',
) -> Callable[[Callable[P, Coroutine[Any, Any, R]]], Callable[P, Coroutine[Any, Any, R]]]:
	def decorator(func: Callable[P, Coroutine[Any, Any, R]]) -> Callable[P, Coroutine[Any, Any, R]]:
		@wraps(func)
		async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
			start_time = time.time()
			result = await func(*args, **kwargs)
			execution_time = time.time() - start_time
			# Only log if execution takes more than 0.25 seconds to avoid spamming the logs
			if execution_time > 0.25:
				self_has_logger = args and getattr(args[0], 'logger', None)
				if self_has_logger:
					log = getattr(args[0], 'logger')
				else:
					log = logging.getLogger(__name__)
				log.debug(f'⏳ {additional_text.strip("-")}() took {execution_time:.2f}s')
			return result

		return wrapper

	return decorator


def create_task_with_error_handling(
	coro: Coroutine[Any, Any, T],
	*,
	name: str | None = None,
	logger_instance: logging.Logger | None = None,
	suppress_exceptions: bool = False,
) -> asyncio.Task[T]:
	"""Create an asyncio task whose exception is always retrieved and logged.

	Fire-and-forget tasks otherwise end with "Task exception was never retrieved"
	warnings at garbage collection time, long after the failure happened.

	Args:
		coro: The coroutine to run
		name: Optional task name, shown in logs
		logger_instance: Logger to report with (defaults to this module's logger)
		suppress_exceptions: Log at ERROR and swallow instead of logging at WARNING
	"""
	task = asyncio.create_task(coro, name=name)
	log = logger_instance or logger

	def _handle_task_exception(t: asyncio.Task[T]) -> None:
		if t.cancelled():
			return
		exc = t.exception()
		if exc is None:
			return
		task_name = t.get_name() or 'unnamed'
		if suppress_exceptions:
			log.error(f'Exception in background task [{task_name}]: {type(exc).__name__}: {exc}', exc_info=exc)
		else:
			log.warning(f'Exception in background task [{task_name}]: {type(exc).__name__}: {exc}', exc_info=exc)

	task.add_done_callback(_handle_task_exception)
	return task
