import inspect
import logging
from collections.abc import Callable
from inspect import Parameter, signature
from typing import Any

from pydantic import BaseModel, ConfigDict, create_model

from agent_core.tools.registry.views import ActionRegistry, RegisteredAction, SpecialActionParameters

logger = logging.getLogger(__name__)


class _SignatureParams(BaseModel):
	model_config = ConfigDict(extra='forbid', arbitrary_types_allowed=True)


class Registry:
	"""Service for registering and managing actions"""

	def __init__(self, exclude_actions: list[str] | None = None):
		self.registry = ActionRegistry()
		self.exclude_actions = exclude_actions if exclude_actions is not None else []

	def _create_param_model(self, function: Callable) -> type[BaseModel]:
		"""Creates a Pydantic model from function signature"""
		sig = signature(function)
		special_param_names = set(SpecialActionParameters.model_fields)
		params = {
			name: (
				Any if param.annotation is Parameter.empty else param.annotation,
				... if param.default is Parameter.empty else param.default,
			)
			for name, param in sig.parameters.items()
			if name not in special_param_names and param.kind not in (Parameter.VAR_POSITIONAL, Parameter.VAR_KEYWORD)
		}
		return create_model(
			f'{function.__name__}_parameters',
			__base__=_SignatureParams,
			**params,  # type: ignore
		)

	def _inspect_handler(self, func: Callable, description: str, param_model: type[BaseModel] | None) -> RegisteredAction:
		sig = signature(func)
		special_param_names = set(SpecialActionParameters.model_fields)
		special_params = frozenset(name for name in sig.parameters if name in special_param_names)

		if param_model is None:
			return RegisteredAction(
				name=func.__name__,
				description=description,
				function=func,
				param_model=self._create_param_model(func),
				takes_param_model=False,
				special_params=special_params,
			)

		# With an explicit model the handler takes exactly one non-injected argument: the model instance
		regular = [name for name in sig.parameters if name not in special_param_names]
		if len(regular) != 1:
			raise ValueError(
				f'Action {func.__name__} uses param_model={param_model.__name__} and must take exactly one '
				f'non-injected argument for it, got {regular}'
			)
		return RegisteredAction(
			name=func.__name__,
			description=description,
			function=func,
			param_model=param_model,
			takes_param_model=True,
			special_params=special_params,
		)

	def action(self, description: str, param_model: type[BaseModel] | None = None):
		"""Decorator for registering actions"""

		def decorator(func: Callable):
			# Skip registration if action is in exclude_actions
			if func.__name__ in self.exclude_actions:
				return func

			action = self._inspect_handler(func, description, param_model)
			if func.__name__ in self.registry.actions:
				logger.debug(f'Replacing registered action {func.__name__}')
			self.registry.actions[func.__name__] = action
			return func

		return decorator

	def exclude_action(self, action_name: str) -> None:
		if action_name not in self.exclude_actions:
			self.exclude_actions.append(action_name)
		self.registry.actions.pop(action_name, None)

	def get_action(self, action_name: str) -> RegisteredAction | None:
		return self.registry.actions.get(action_name)

	@property
	def action_names(self) -> list[str]:
		return list(self.registry.actions)

	async def execute_action(
		self,
		action: RegisteredAction,
		validated_params: BaseModel,
		special_context: SpecialActionParameters,
	) -> Any:
		"""Call a registered handler with already validated params and the injected parameters it asked for."""
		kwargs = special_context.for_action(action)

		if action.takes_param_model:
			sig = signature(action.function)
			param_name = next(name for name in sig.parameters if name not in action.special_params)
			kwargs[param_name] = validated_params
		else:
			kwargs.update({name: getattr(validated_params, name) for name in type(validated_params).model_fields})

		result = action.function(**kwargs)
		if inspect.isawaitable(result):
			result = await result
		return result
