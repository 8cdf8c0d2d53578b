import logging
from typing import TYPE_CHECKING

from agent_core.config import CONFIG
from agent_core.logging_config import setup_logging

# Only set up logging if not explicitly disabled, so embedding hosts keep their own configuration
if CONFIG.AGENT_CORE_SETUP_LOGGING:
	logger = setup_logging(log_level=CONFIG.AGENT_CORE_LOGGING_LEVEL)
else:
	logger = logging.getLogger('agent_core')

if TYPE_CHECKING:
	from agent_core.agent.service import BrowserAgent
	from agent_core.agent.views import ActionResult, AgentSettings
	from agent_core.browser.focus import FocusTracker
	from agent_core.browser.session_pool import SessionPool
	from agent_core.browser.views import AgentFocus, CDPSession, Target
	from agent_core.engine.base import EngineAdapter
	from agent_core.engine.cdp import CDPEngine
	from agent_core.errors.service import ErrorHandler
	from agent_core.errors.views import BrowserError, ErrorKind
	from agent_core.events import EventBus
	from agent_core.tools.service import Tools


# Lazy imports mapping keep `import agent_core` cheap for hosts that only need events or errors
_LAZY_IMPORTS = {
	'BrowserAgent': ('agent_core.agent.service', 'BrowserAgent'),
	'ActionResult': ('agent_core.agent.views', 'ActionResult'),
	'AgentSettings': ('agent_core.agent.views', 'AgentSettings'),
	'FocusTracker': ('agent_core.browser.focus', 'FocusTracker'),
	'SessionPool': ('agent_core.browser.session_pool', 'SessionPool'),
	'AgentFocus': ('agent_core.browser.views', 'AgentFocus'),
	'CDPSession': ('agent_core.browser.views', 'CDPSession'),
	'Target': ('agent_core.browser.views', 'Target'),
	'EngineAdapter': ('agent_core.engine.base', 'EngineAdapter'),
	'CDPEngine': ('agent_core.engine.cdp', 'CDPEngine'),
	'ErrorHandler': ('agent_core.errors.service', 'ErrorHandler'),
	'BrowserError': ('agent_core.errors.views', 'BrowserError'),
	'ErrorKind': ('agent_core.errors.views', 'ErrorKind'),
	'EventBus': ('agent_core.events', 'EventBus'),
	'Tools': ('agent_core.tools.service', 'Tools'),
}


def __getattr__(name: str):
	"""Lazy import mechanism for heavy modules."""
	if name in _LAZY_IMPORTS:
		module_path, attr_name = _LAZY_IMPORTS[name]
		from importlib import import_module

		module = import_module(module_path)
		attr = getattr(module, attr_name)
		# Cache the imported attribute in the module's globals
		globals()[name] = attr
		return attr

	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
	'ActionResult',
	'AgentFocus',
	'AgentSettings',
	'BrowserAgent',
	'BrowserError',
	'CDPEngine',
	'CDPSession',
	'EngineAdapter',
	'ErrorHandler',
	'ErrorKind',
	'EventBus',
	'FocusTracker',
	'SessionPool',
	'Target',
	'Tools',
]
