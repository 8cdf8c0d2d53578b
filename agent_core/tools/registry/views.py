from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict

from agent_core.browser.focus import FocusTracker
from agent_core.browser.session_pool import SessionPool
from agent_core.browser.views import CDPSession
from agent_core.engine.base import EngineAdapter
from agent_core.events import EventBus


class RegisteredAction(BaseModel):
	"""Model for a registered action"""

	name: str
	description: str
	function: Callable
	param_model: type[BaseModel]

	# True when the handler takes the validated model as one argument instead of its fields as kwargs
	takes_param_model: bool = False
	# Injected parameters the handler asked for, by name
	special_params: frozenset[str] = frozenset()

	model_config = ConfigDict(arbitrary_types_allowed=True)

	@property
	def needs_session(self) -> bool:
		return 'cdp_session' in self.special_params

	def prompt_description(self) -> str:
		"""Get a description of the action for the prompt"""
		skip_keys = ['title']
		s = f'{self.description}: \n'
		s += '{' + str(self.name) + ': '
		s += str(
			{
				k: {sub_k: sub_v for sub_k, sub_v in v.items() if sub_k not in skip_keys}
				for k, v in self.param_model.model_json_schema().get('properties', {}).items()
			}
		)
		s += '}'
		return s


class ActionRegistry(BaseModel):
	"""Model representing the action registry"""

	actions: dict[str, RegisteredAction] = {}

	def get_prompt_description(self) -> str:
		return '\n'.join(action.prompt_description() for action in self.actions.values())


class SpecialActionParameters(BaseModel):
	"""Parameters an action handler receives by declaring an argument with the same name."""

	model_config = ConfigDict(arbitrary_types_allowed=True)

	cdp_session: CDPSession | None = None
	engine: EngineAdapter | None = None
	session_pool: SessionPool | None = None
	focus: FocusTracker | None = None
	event_bus: EventBus | None = None

	def for_action(self, action: RegisteredAction) -> dict[str, Any]:
		return {name: getattr(self, name) for name in action.special_params}
