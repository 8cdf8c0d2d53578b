from typing import TYPE_CHECKING

from agent_core.browser.views import MAIN_TARGET_ID, AgentFocus, CDPSession, Target

if TYPE_CHECKING:
	from agent_core.browser.focus import FocusTracker
	from agent_core.browser.session_pool import SessionPool

# The pool depends on the engine package, which depends on browser.views, so these load on first use
_LAZY_IMPORTS = {
	'FocusTracker': ('agent_core.browser.focus', 'FocusTracker'),
	'SessionPool': ('agent_core.browser.session_pool', 'SessionPool'),
}


def __getattr__(name: str):
	if name in _LAZY_IMPORTS:
		module_path, attr_name = _LAZY_IMPORTS[name]
		from importlib import import_module

		attr = getattr(import_module(module_path), attr_name)
		globals()[name] = attr
		return attr

	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ['AgentFocus', 'CDPSession', 'FocusTracker', 'MAIN_TARGET_ID', 'SessionPool', 'Target']
