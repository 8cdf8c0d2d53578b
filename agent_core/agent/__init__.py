from typing import TYPE_CHECKING

from agent_core.agent.views import ActionResult, AgentSettings

if TYPE_CHECKING:
	from agent_core.agent.service import BrowserAgent


def __getattr__(name: str):
	# BrowserAgent pulls in every other subpackage, so it is imported on first use
	if name == 'BrowserAgent':
		from agent_core.agent.service import BrowserAgent

		return BrowserAgent
	raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = ['ActionResult', 'AgentSettings', 'BrowserAgent']
