import logging
import sys

from dotenv import load_dotenv

load_dotenv()

from agent_core.config import CONFIG


def addLoggingLevel(levelName, levelNum, methodName=None):
	"""
	Comprehensively adds a new logging level to the `logging` module and the
	currently configured logging class.

	`levelName` becomes an attribute of the `logging` module with the value
	`levelNum`. `methodName` becomes a convenience method for both `logging`
	itself and the class returned by `logging.getLoggerClass()` (usually just
	`logging.Logger`). If `methodName` is not specified, `levelName.lower()` is
	used.

	Raises `AttributeError` if the level name is already an attribute of the
	`logging` module or if the method name is already present.
	"""
	if not methodName:
		methodName = levelName.lower()

	if hasattr(logging, levelName):
		raise AttributeError(f'{levelName} already defined in logging module')
	if hasattr(logging, methodName):
		raise AttributeError(f'{methodName} already defined in logging module')
	if hasattr(logging.getLoggerClass(), methodName):
		raise AttributeError(f'{methodName} already defined in logger class')

	def logForLevel(self, message, *args, **kwargs):
		if self.isEnabledFor(levelNum):
			self._log(levelNum, message, args, **kwargs)

	def logToRoot(message, *args, **kwargs):
		logging.log(levelNum, message, *args, **kwargs)

	logging.addLevelName(levelNum, levelName)
	setattr(logging, levelName, levelNum)
	setattr(logging.getLoggerClass(), methodName, logForLevel)
	setattr(logging, methodName, logToRoot)


def setup_logging(stream=None, log_level=None, force_setup=False):
	"""Setup logging configuration for agent-core.

	Args:
		stream: Output stream for logs (default: sys.stdout). Use sys.stderr when stdout carries a protocol.
		log_level: Override log level (default: uses CONFIG.AGENT_CORE_LOGGING_LEVEL)
		force_setup: Force reconfiguration even if handlers already exist
	"""
	try:
		addLoggingLevel('RESULT', 35)  # This allows ERROR, FATAL and CRITICAL
	except AttributeError:
		pass  # Level already exists, which is fine

	log_type = log_level or CONFIG.AGENT_CORE_LOGGING_LEVEL

	if logging.getLogger().hasHandlers() and not force_setup:
		return logging.getLogger('agent_core')

	root = logging.getLogger()
	root.handlers = []

	class AgentCoreFormatter(logging.Formatter):
		def format(self, record):
			# agent_core.browser.session_pool -> session_pool
			original_name = record.name
			if isinstance(original_name, str) and original_name.startswith('agent_core.'):
				record.name = original_name.split('.')[-1]
			try:
				return super().format(record)
			finally:
				record.name = original_name

	console = logging.StreamHandler(stream or sys.stdout)

	if log_type == 'result':
		console.setLevel('RESULT')
		console.setFormatter(AgentCoreFormatter('%(message)s'))
	else:
		console.setFormatter(AgentCoreFormatter('%(levelname)-8s [%(name)s] %(message)s'))

	root.addHandler(console)

	if log_type == 'result':
		root.setLevel('RESULT')  # string usage to avoid syntax error
	elif log_type == 'debug':
		root.setLevel(logging.DEBUG)
	else:
		root.setLevel(logging.INFO)

	agent_core_logger = logging.getLogger('agent_core')
	agent_core_logger.propagate = False  # Don't propagate to root logger
	agent_core_logger.addHandler(console)
	agent_core_logger.setLevel(root.level)

	# Silence or adjust third-party loggers
	third_party_loggers = [
		'httpx',
		'httpcore',
		'websockets',
		'websockets.client',
		'cdp_use',
		'cdp_use.client',
		'bubus',
		'asyncio',
	]
	for logger_name in third_party_loggers:
		third_party = logging.getLogger(logger_name)
		third_party.setLevel(logging.ERROR)
		third_party.propagate = False

	return agent_core_logger
